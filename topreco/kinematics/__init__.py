"""
Kinematics Module
=================

Responsibility:
- Four-vector value type and its immutable collection.
- Charged-lepton particle codes and masses.
"""

from .four_vector import FourVector, FourVectorCollection, get_tlv

__all__ = ['FourVector', 'FourVectorCollection', 'get_tlv']
