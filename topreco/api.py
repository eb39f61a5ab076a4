"""
Public entry points of the dilepton top-pair reconstruction.

    tops = sonn(lep, lepbar, 11, -13, jet, jetbar, True, False, emiss_x, emiss_y,
                smearing=load_smearing_histos("smearingHistos.json"))
    top = get_tlv(tops, 0)

Histograms and configuration are passed explicitly; nothing here keeps
state between calls.
"""

import logging
from typing import Any, Dict, Optional, Union
from pathlib import Path

from topreco.config_manager.config_manager import ConfigurationManager
from topreco.kinematics.four_vector import FourVector, FourVectorCollection, get_tlv
from topreco.logging_config.logging_config import LoggingConfigurator
from topreco.reconstruction_engine.reconstruction import EventInputs, TopReconstructor
from topreco.smearing.histograms import SmearingHistograms, load_smearing_histos as _load_histograms

logger = logging.getLogger("topreco")

__all__ = ['get_tlv', 'sonn', 'load_smearing_histos', 'init_logs', 'stop_logs']


def sonn(
    lep: FourVector,
    lepbar: FourVector,
    pdg_id_lep: int,
    pdg_id_lepbar: int,
    jet: FourVector,
    jetbar: FourVector,
    isb_jet: bool,
    isb_jetbar: bool,
    emiss_x: float,
    emiss_y: float,
    smearing: Optional[SmearingHistograms] = None,
    config: Optional[Dict[str, Any]] = None,
    seed: Optional[int] = None,
) -> FourVectorCollection:
    """
    Reconstruct the top and anti-top of a dilepton event.

    Args:
        lep, pdg_id_lep: Lepton from the anti-top decay and its PDG code.
        lepbar, pdg_id_lepbar: Antilepton from the top decay and its PDG code.
        jet, jetbar: The two jets; both pairings with the leptons are tried
            unless reconstruction.try_both_assignments is false.
        isb_jet, isb_jetbar: b-tag flags of the jets.
        emiss_x, emiss_y: Missing transverse momentum components (GeV).
        smearing: Histograms from load_smearing_histos; without them the
            unsmeared Sonnenschein solution is returned.
        config: Optional overrides of the default configuration.
        seed: Random seed of the smearing loop (defaults to smearing.seed).

    Returns:
        FourVectorCollection: [top, anti-top], or empty when the event has no
        physical solution.

    Raises:
        KinematicInputError: On non-finite vectors or unusable PDG codes.
        ConfigurationError: On an invalid config override.
    """
    resolved = ConfigurationManager.from_dict(config) if config else None
    reconstructor = TopReconstructor(resolved, smearing=smearing, logger=logger)
    event = EventInputs(
        lep=lep,
        lepbar=lepbar,
        pdg_id_lep=pdg_id_lep,
        pdg_id_lepbar=pdg_id_lepbar,
        jet=jet,
        jetbar=jetbar,
        isb_jet=isb_jet,
        isb_jetbar=isb_jetbar,
        emiss_x=emiss_x,
        emiss_y=emiss_y,
    )
    return reconstructor.reconstruct(event, seed=seed)


def load_smearing_histos(fname: Union[str, Path]) -> SmearingHistograms:
    """Load smearing histograms; raises SmearingHistogramError on a bad file."""
    return _load_histograms(fname)


def init_logs(config: Optional[Dict[str, Any]] = None) -> LoggingConfigurator:
    """Start console/file logging. Repeated calls replace the earlier handlers."""
    configurator = LoggingConfigurator(config)
    configurator.setup()
    logger.debug("Logging started")
    return configurator


def stop_logs() -> None:
    """Flush and remove the handlers installed by init_logs. Safe to repeat."""
    LoggingConfigurator.shutdown()
