"""
Custom exception hierarchy for the dilepton top-pair reconstruction.
"""

class TopRecoException(Exception):
    """Base exception for all system errors."""
    pass

class ConfigurationError(TopRecoException):
    """Configuration validation failed."""
    pass

class SmearingHistogramError(TopRecoException):
    """Smearing histogram file missing or malformed."""
    pass

class KinematicInputError(TopRecoException):
    """Reconstruction inputs are not usable four-vectors or particle codes."""
    pass

class EventDataError(TopRecoException):
    """Event table validation failed."""
    pass

class ReconstructionError(TopRecoException):
    """Batch reconstruction failed."""
    pass
