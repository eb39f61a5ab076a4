"""
Reconstruction Engine Module
============================

Responsibility:
- Per-event strategy: jet assignment, smearing loop, m(l, b) weighting.
- Batch reconstruction of event tables with joblib workers.
"""

from .reconstruction import EventInputs, TopReconstructor
from .reconstruction_engine import ReconstructionEngine

__all__ = ['EventInputs', 'TopReconstructor', 'ReconstructionEngine']
