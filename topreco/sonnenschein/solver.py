"""
Analytic solution of the dilepton top-pair neutrino system.

For t -> b l+ nu and tbar -> bbar l- nubar the unknown neutrino momenta obey

    nu^2 = 0,  (l+ + nu)^2 = mW+^2,  (b + l+ + nu)^2 = mt^2
    nubar^2 = 0, (l- + nubar)^2 = mW-^2, (bbar + l- + nubar)^2 = mtbar^2
    nu_x + nubar_x = MET_x,  nu_y + nubar_y = MET_y

The W and top constraints are linear in (E, pz) once (px, py) is fixed, so
each side reduces to a conic in its transverse momentum. Writing the
anti-neutrino conic in neutrino coordinates and eliminating py leaves a
quartic in px (Sonnenschein, Phys. Rev. D 73, 054015).
"""

import logging
import math
import numpy as np
from numpy.polynomial import polynomial as P
from dataclasses import dataclass
from typing import List, Optional, Tuple

from topreco.kinematics.four_vector import FourVector

logger = logging.getLogger("topreco.sonnenschein")

# Relative size below which a pivot or polynomial coefficient counts as zero
_SINGULAR_EPS = 1e-12
_DUPLICATE_EPS = 1e-9
_NEWTON_STEPS = 4


@dataclass(frozen=True)
class NeutrinoSolution:
    """One real solution of the neutrino system with the resulting tops."""
    nu: FourVector
    nubar: FourVector
    top: FourVector
    antitop: FourVector

    @property
    def mtt(self) -> float:
        return (self.top + self.antitop).m


@dataclass(frozen=True)
class _SideConic:
    # Conic matrix in u = (px, py, 1), plus the linear maps u -> E and u -> pz
    matrix: np.ndarray
    energy: np.ndarray
    pz: np.ndarray


def _side_conic(lepton: FourVector, bjet: FourVector, m_top: float, m_w: float) -> Optional[_SideConic]:
    """
    Build the neutrino conic for one decay side, or None when the (E, pz)
    system is singular (lepton and b-jet with proportional E and pz).
    """
    alpha_w = 0.5 * (m_w * m_w - lepton.m2)
    alpha_t = 0.5 * (m_top * m_top - (lepton + bjet).m2 - m_w * m_w + lepton.m2)

    r_lep = np.array([lepton.px, lepton.py, alpha_w])
    r_b = np.array([bjet.px, bjet.py, alpha_t])

    det = lepton.pz * bjet.e - lepton.e * bjet.pz
    if abs(det) <= _SINGULAR_EPS * max(1.0, abs(lepton.e * bjet.e)):
        return None

    energy = (lepton.pz * r_b - bjet.pz * r_lep) / det
    pz = (lepton.e * r_b - bjet.e * r_lep) / det

    matrix = np.outer(energy, energy) - np.outer(pz, pz) - np.diag([1.0, 1.0, 0.0])
    return _SideConic(matrix=matrix, energy=energy, pz=pz)


def _quadratic_in_y(conic: np.ndarray) -> Tuple[float, np.ndarray, np.ndarray]:
    """Coefficients a, b(x), c(x) of a y^2 + b y + c = 0 (polynomials low to high)."""
    a = conic[1, 1]
    b = np.array([2.0 * conic[1, 2], 2.0 * conic[0, 1]])
    c = np.array([conic[2, 2], 2.0 * conic[0, 2], conic[0, 0]])
    return a, b, c


def _polish_root(x: float, poly: np.ndarray, dpoly: np.ndarray) -> float:
    """A few guarded Newton steps on a real root estimate."""
    fx = P.polyval(x, poly)
    for _ in range(_NEWTON_STEPS):
        dfx = P.polyval(x, dpoly)
        if dfx == 0.0:
            break
        candidate = x - fx / dfx
        fc = P.polyval(candidate, poly)
        if abs(fc) >= abs(fx):
            break
        x, fx = candidate, fc
    return x


def _real_roots(poly: np.ndarray, imag_tolerance: float) -> List[float]:
    if len(poly) < 2:
        return []
    dpoly = P.polyder(poly)
    roots = []
    for root in P.polyroots(poly):
        if abs(root.imag) > imag_tolerance * (1.0 + abs(root.real)):
            continue
        x = _polish_root(float(root.real), poly, dpoly)
        if any(abs(x - r) <= _DUPLICATE_EPS * (1.0 + abs(r)) for r in roots):
            continue
        roots.append(x)
    return roots


def _common_y(x: float, first: np.ndarray, second: np.ndarray) -> Optional[float]:
    """py shared by both conics at the given px."""
    a1, b1, c1 = _quadratic_in_y(first)
    a2, b2, c2 = _quadratic_in_y(second)
    b1x, c1x = P.polyval(x, b1), P.polyval(x, c1)
    b2x, c2x = P.polyval(x, b2), P.polyval(x, c2)

    # a2 * (conic 1) - a1 * (conic 2) is linear in y
    denom = a2 * b1x - a1 * b2x
    scale = max(1.0, abs(a1 * b2x), abs(a2 * b1x))
    if abs(denom) > 1e-9 * scale:
        return (a1 * c2x - a2 * c1x) / denom

    # Degenerate: fall back to the root of conic 1 that best satisfies conic 2
    if abs(a1) <= _SINGULAR_EPS:
        if abs(b1x) <= _SINGULAR_EPS:
            return None
        candidates = [-c1x / b1x]
    else:
        disc = b1x * b1x - 4.0 * a1 * c1x
        if disc < 0.0:
            candidates = [-b1x / (2.0 * a1)]
        else:
            sq = math.sqrt(disc)
            candidates = [(-b1x + sq) / (2.0 * a1), (-b1x - sq) / (2.0 * a1)]
    return min(candidates, key=lambda y: abs(a2 * y * y + b2x * y + c2x))


def _neutrino(conic: _SideConic, u: np.ndarray) -> Optional[FourVector]:
    if float(conic.energy @ u) <= 0.0:
        return None
    px, py, pz = float(u[0]), float(u[1]), float(conic.pz @ u)
    return FourVector(px, py, pz, math.sqrt(px * px + py * py + pz * pz))


def solve(
    lepbar: FourVector,
    lep: FourVector,
    b: FourVector,
    bbar: FourVector,
    emiss_x: float,
    emiss_y: float,
    m_top: float,
    m_w_plus: float,
    m_w_minus: float,
    m_top_bar: Optional[float] = None,
    imag_tolerance: float = 1e-6,
) -> List[NeutrinoSolution]:
    """
    Solve the dilepton neutrino system.

    Args:
        lepbar: Positively charged lepton, paired with `b` (top side).
        lep: Negatively charged lepton, paired with `bbar` (anti-top side).
        b, bbar: Jets assigned to the top and anti-top.
        emiss_x, emiss_y: Missing transverse momentum components (GeV).
        m_top, m_top_bar: Top and anti-top masses (anti-top defaults to m_top).
        m_w_plus, m_w_minus: W+ and W- masses.
        imag_tolerance: Largest relative imaginary part accepted for a root.

    Returns:
        Up to four solutions sorted by ascending m(t tbar). An empty list
        means the event has no real solution for these masses.
    """
    if m_top_bar is None:
        m_top_bar = m_top

    # Work in units of the top mass to keep the quartic well conditioned
    scale = m_top
    inv = 1.0 / scale
    lepbar_s, lep_s, b_s, bbar_s = (v * inv for v in (lepbar, lep, b, bbar))
    met_x, met_y = emiss_x * inv, emiss_y * inv

    top_side = _side_conic(lepbar_s, b_s, m_top * inv, m_w_plus * inv)
    antitop_side = _side_conic(lep_s, bbar_s, m_top_bar * inv, m_w_minus * inv)
    if top_side is None or antitop_side is None:
        logger.debug("Singular (E, pz) system; no neutrino solution")
        return []

    # nubar_T = MET - nu_T, as a map on homogeneous coordinates
    to_nubar = np.array([[-1.0, 0.0, met_x], [0.0, -1.0, met_y], [0.0, 0.0, 1.0]])
    second = to_nubar.T @ antitop_side.matrix @ to_nubar
    first = top_side.matrix

    # Resultant of the two quadratics in y: (a1 c2 - a2 c1)^2 - (a1 b2 - a2 b1)(b1 c2 - b2 c1)
    a1, b1, c1 = _quadratic_in_y(first)
    a2, b2, c2 = _quadratic_in_y(second)
    ac = P.polysub(a1 * c2, a2 * c1)
    ab = P.polysub(a1 * b2, a2 * b1)
    bc = P.polysub(P.polymul(b1, c2), P.polymul(b2, c1))
    quartic = P.polysub(P.polymul(ac, ac), P.polymul(ab, bc))

    largest = np.max(np.abs(quartic)) if len(quartic) else 0.0
    if largest == 0.0:
        logger.debug("Vanishing resultant; no neutrino solution")
        return []
    quartic = P.polytrim(quartic / largest, _SINGULAR_EPS)

    solutions = []
    for x in _real_roots(quartic, imag_tolerance):
        y = _common_y(x, first, second)
        if y is None:
            continue
        u = np.array([x, y, 1.0])
        nu = _neutrino(top_side, u)
        nubar = _neutrino(antitop_side, to_nubar @ u)
        if nu is None or nubar is None:
            continue

        nu, nubar = nu * scale, nubar * scale
        solutions.append(NeutrinoSolution(
            nu=nu,
            nubar=nubar,
            top=b + lepbar + nu,
            antitop=bbar + lep + nubar,
        ))

    solutions.sort(key=lambda s: s.mtt)
    logger.debug(f"Sonnenschein solve: {len(solutions)} physical solution(s)")
    return solutions
