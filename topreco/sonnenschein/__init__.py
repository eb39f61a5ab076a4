"""
Sonnenschein Module
===================

Responsibility:
- Analytic solution of the dilepton neutrino system (two conics, one quartic).
"""

from .solver import NeutrinoSolution, solve

__all__ = ['NeutrinoSolution', 'solve']
