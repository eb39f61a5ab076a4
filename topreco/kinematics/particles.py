import math
from typing import Tuple

from topreco.kinematics.four_vector import FourVector
from topreco.utils.exceptions import KinematicInputError
from topreco.utils import constants


def lepton_mass(pdg_id: int) -> float:
    """Mass (GeV) of the charged lepton identified by a PDG code."""
    return constants.LEPTON_MASSES[validate_lepton_id(pdg_id)]


def validate_lepton_id(pdg_id: int) -> int:
    """
    Check that a PDG code names a charged lepton and return its absolute value.

    Raises:
        KinematicInputError: If the code is not e, mu or tau.
    """
    try:
        code = abs(int(pdg_id))
    except (TypeError, ValueError):
        raise KinematicInputError(f"PDG code must be an integer, got {pdg_id!r}")
    if code not in constants.LEPTON_MASSES:
        raise KinematicInputError(
            f"PDG code {pdg_id} is not a charged lepton (expected |id| in {sorted(constants.LEPTON_MASSES)})"
        )
    return code


def validate_lepton_pair(pdg_id_lep: int, pdg_id_lepbar: int) -> Tuple[int, int]:
    """Both codes must be charged leptons of opposite sign."""
    lep_code = validate_lepton_id(pdg_id_lep)
    lepbar_code = validate_lepton_id(pdg_id_lepbar)
    if int(pdg_id_lep) * int(pdg_id_lepbar) > 0:
        raise KinematicInputError(
            f"Leptons must have opposite-sign PDG codes, got {pdg_id_lep} and {pdg_id_lepbar}"
        )
    return lep_code, lepbar_code


def flavour_suffix(pdg_id: int) -> str:
    return constants.LEPTON_FLAVOUR_SUFFIX[validate_lepton_id(pdg_id)]


def validate_four_vector(vec: FourVector, label: str) -> FourVector:
    """Reject non-finite components and negative energies."""
    if not isinstance(vec, FourVector):
        raise KinematicInputError(f"{label} must be a FourVector, got {type(vec).__name__}")
    if not vec.is_finite():
        raise KinematicInputError(f"{label} has non-finite components: {vec}")
    if vec.e <= 0.0:
        raise KinematicInputError(f"{label} must have positive energy, got E={vec.e}")
    return vec


def with_lepton_mass(vec: FourVector, pdg_id: int) -> FourVector:
    """Reset the energy so the lepton sits on its mass shell."""
    m = lepton_mass(pdg_id)
    return FourVector(vec.px, vec.py, vec.pz, math.sqrt(vec.p2 + m * m))
