"""
topreco
=======

Dilepton top-quark-pair reconstruction with the Sonnenschein analytic
neutrino solution, optionally averaged over detector-resolution smearing.
"""

from topreco.api import get_tlv, init_logs, load_smearing_histos, sonn, stop_logs
from topreco.kinematics.four_vector import FourVector, FourVectorCollection
from topreco.smearing.histograms import SmearingHistogram, SmearingHistograms

__version__ = "0.1.0"

__all__ = [
    'FourVector',
    'FourVectorCollection',
    'SmearingHistogram',
    'SmearingHistograms',
    'get_tlv',
    'init_logs',
    'load_smearing_histos',
    'sonn',
    'stop_logs',
]
