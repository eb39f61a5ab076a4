import math
import numpy as np
from typing import Optional

from topreco.kinematics.four_vector import FourVector
from topreco.kinematics.particles import flavour_suffix
from topreco.smearing.histograms import SmearingHistograms
from topreco.utils import constants


def scale_energy(vec: FourVector, factor: float) -> Optional[FourVector]:
    """
    Multiply the energy by `factor` keeping the invariant mass fixed.

    Returns None when the scaled energy falls below the mass.
    """
    if factor <= 0.0:
        return None
    m2 = max(vec.m2, 0.0)
    e = vec.e * factor
    p2 = e * e - m2
    if p2 <= 0.0 or vec.p == 0.0:
        return None
    k = math.sqrt(p2) / vec.p
    return FourVector(vec.px * k, vec.py * k, vec.pz * k, e)


def rotate_direction(vec: FourVector, alpha: float, azimuth: float) -> FourVector:
    """Tilt the momentum by `alpha` around the original direction at the given azimuth."""
    p = vec.p
    if p == 0.0 or alpha == 0.0:
        return vec
    direction = vec.momentum / p
    helper = np.array([0.0, 0.0, 1.0]) if abs(direction[2]) < 0.9 else np.array([1.0, 0.0, 0.0])
    u1 = np.cross(direction, helper)
    u1 /= np.linalg.norm(u1)
    u2 = np.cross(direction, u1)

    tilted = math.cos(alpha) * direction + math.sin(alpha) * (math.cos(azimuth) * u1 + math.sin(azimuth) * u2)
    px, py, pz = p * tilted
    return FourVector(px, py, pz, vec.e)


class DetectorSmearer:
    """
    Draws detector-resolution variations of reconstructed objects.

    Every draw comes from the random state passed in, so a smearer seeded the
    same way replays the same sequence.
    """

    def __init__(self, histograms: SmearingHistograms, rng: np.random.RandomState):
        self.histograms = histograms
        self.rng = rng

    def _smear(self, vec: FourVector, energy_hist, angle_hist) -> Optional[FourVector]:
        if angle_hist is not None:
            alpha = angle_hist.sample(self.rng)
            azimuth = self.rng.uniform(0.0, 2.0 * math.pi)
            vec = rotate_direction(vec, alpha, azimuth)
        if energy_hist is not None:
            return scale_energy(vec, energy_hist.sample(self.rng))
        return vec

    def smear_jet(self, jet: FourVector, is_b: bool) -> Optional[FourVector]:
        tagged = constants.HIST_JET_ENERGY_B if is_b else constants.HIST_JET_ENERGY_LIGHT
        energy_hist = self.histograms.first_of(tagged, constants.HIST_JET_ENERGY)
        angle_hist = self.histograms.first_of(constants.HIST_JET_ANGLE)
        return self._smear(jet, energy_hist, angle_hist)

    def smear_lepton(self, lepton: FourVector, pdg_id: int) -> Optional[FourVector]:
        suffix = flavour_suffix(pdg_id)
        energy_hist = self.histograms.first_of(
            f"{constants.HIST_LEP_ENERGY}_{suffix}", constants.HIST_LEP_ENERGY
        )
        angle_hist = self.histograms.first_of(
            f"{constants.HIST_LEP_ANGLE}_{suffix}", constants.HIST_LEP_ANGLE
        )
        return self._smear(lepton, energy_hist, angle_hist)

    def sample_w_mass(self, nominal: float) -> float:
        hist = self.histograms.first_of(constants.HIST_W_MASS)
        if hist is None:
            return nominal
        return hist.sample(self.rng)

    def mlb_weight(self, lepton: FourVector, bjet: FourVector) -> float:
        """Density of the true m(l, b) distribution at the smeared pair mass."""
        hist = self.histograms.first_of(constants.HIST_MLB)
        if hist is None:
            return 1.0
        return hist.density((lepton + bjet).m)
