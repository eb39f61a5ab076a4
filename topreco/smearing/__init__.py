"""
Smearing Module
===============

Responsibility:
- Loading, validating and saving detector-resolution histograms.
- Drawing smeared variations of jets, leptons and W masses from them.
"""

from .histograms import SmearingHistogram, SmearingHistograms, load_smearing_histos
from .smearer import DetectorSmearer

__all__ = ['SmearingHistogram', 'SmearingHistograms', 'load_smearing_histos', 'DetectorSmearer']
