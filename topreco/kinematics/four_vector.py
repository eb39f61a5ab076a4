import math
import numpy as np
from dataclasses import dataclass
from collections import abc
from typing import Iterable, Iterator, Tuple, Union

@dataclass(frozen=True)
class FourVector:
    """
    Lorentz four-vector in (px, py, pz, E) form, energies and momenta in GeV.

    Instances are immutable; every operation returns a new vector.
    """
    px: float
    py: float
    pz: float
    e: float

    def __post_init__(self):
        # Normalise numpy scalars and ints so equality and hashing are stable.
        for name in ('px', 'py', 'pz', 'e'):
            object.__setattr__(self, name, float(getattr(self, name)))

    # --- Constructors ---

    @classmethod
    def from_pt_eta_phi_m(cls, pt: float, eta: float, phi: float, m: float) -> "FourVector":
        px, py, pz = cls._momentum_from_pt_eta_phi(pt, eta, phi)
        e = math.sqrt(px * px + py * py + pz * pz + m * m)
        return cls(px, py, pz, e)

    @classmethod
    def from_pt_eta_phi_e(cls, pt: float, eta: float, phi: float, e: float) -> "FourVector":
        px, py, pz = cls._momentum_from_pt_eta_phi(pt, eta, phi)
        return cls(px, py, pz, e)

    @staticmethod
    def _momentum_from_pt_eta_phi(pt: float, eta: float, phi: float) -> Tuple[float, float, float]:
        pt = abs(pt)
        return pt * math.cos(phi), pt * math.sin(phi), pt * math.sinh(eta)

    # --- Derived quantities ---

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def p2(self) -> float:
        return self.px * self.px + self.py * self.py + self.pz * self.pz

    @property
    def p(self) -> float:
        return math.sqrt(self.p2)

    @property
    def m2(self) -> float:
        return self.e * self.e - self.p2

    @property
    def m(self) -> float:
        """Invariant mass; negative when the vector is space-like."""
        m2 = self.m2
        return math.sqrt(m2) if m2 >= 0.0 else -math.sqrt(-m2)

    @property
    def phi(self) -> float:
        return math.atan2(self.py, self.px)

    @property
    def eta(self) -> float:
        pt = self.pt
        if pt == 0.0:
            if self.pz == 0.0:
                return 0.0
            return math.copysign(math.inf, self.pz)
        return math.asinh(self.pz / pt)

    @property
    def momentum(self) -> np.ndarray:
        return np.array([self.px, self.py, self.pz])

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.px, self.py, self.pz, self.e))

    def as_array(self) -> np.ndarray:
        return np.array([self.px, self.py, self.pz, self.e])

    # --- Arithmetic ---

    def __add__(self, other: "FourVector") -> "FourVector":
        if not isinstance(other, FourVector):
            return NotImplemented
        return FourVector(self.px + other.px, self.py + other.py, self.pz + other.pz, self.e + other.e)

    def __sub__(self, other: "FourVector") -> "FourVector":
        if not isinstance(other, FourVector):
            return NotImplemented
        return FourVector(self.px - other.px, self.py - other.py, self.pz - other.pz, self.e - other.e)

    def __mul__(self, factor: float) -> "FourVector":
        if not isinstance(factor, (int, float, np.floating, np.integer)):
            return NotImplemented
        return FourVector(self.px * factor, self.py * factor, self.pz * factor, self.e * factor)

    __rmul__ = __mul__

    def __neg__(self) -> "FourVector":
        return FourVector(-self.px, -self.py, -self.pz, -self.e)

    def dot(self, other: "FourVector") -> float:
        """Minkowski product with (+, -, -, -) metric."""
        return self.e * other.e - self.px * other.px - self.py * other.py - self.pz * other.pz

    # --- Geometry ---

    def boost_vector(self) -> np.ndarray:
        if self.e == 0.0:
            raise ZeroDivisionError("Cannot compute the boost vector of a zero-energy four-vector")
        return self.momentum / self.e

    def boost(self, bx: float, by: float, bz: float) -> "FourVector":
        """Boost by velocity (bx, by, bz) in units of c."""
        b2 = bx * bx + by * by + bz * bz
        if b2 >= 1.0:
            raise ValueError(f"Boost velocity must be below c, got |beta|^2 = {b2}")
        gamma = 1.0 / math.sqrt(1.0 - b2)
        bp = bx * self.px + by * self.py + bz * self.pz
        gamma2 = (gamma - 1.0) / b2 if b2 > 0.0 else 0.0

        return FourVector(
            self.px + gamma2 * bp * bx + gamma * bx * self.e,
            self.py + gamma2 * bp * by + gamma * by * self.e,
            self.pz + gamma2 * bp * bz + gamma * bz * self.e,
            gamma * (self.e + bp),
        )

    def angle(self, other: "FourVector") -> float:
        """Opening angle between the three-momenta (rad)."""
        norm = self.p * other.p
        if norm == 0.0:
            return 0.0
        cos_angle = (self.px * other.px + self.py * other.py + self.pz * other.pz) / norm
        return math.acos(min(1.0, max(-1.0, cos_angle)))

    def with_momentum(self, px: float, py: float, pz: float, e: float = None) -> "FourVector":
        """New vector with the given momentum; energy keeps the mass unless given."""
        if e is None:
            e = math.sqrt(px * px + py * py + pz * pz + max(self.m2, 0.0))
        return FourVector(px, py, pz, e)

    def isclose(self, other: "FourVector", rel_tol: float = 1e-9, abs_tol: float = 1e-9) -> bool:
        return all(
            math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol)
            for a, b in zip(self.as_array(), other.as_array())
        )

    def __repr__(self) -> str:
        return f"FourVector(px={self.px:.4f}, py={self.py:.4f}, pz={self.pz:.4f}, e={self.e:.4f})"


class FourVectorCollection(abc.Sequence):
    """
    Immutable, length-tracked sequence of four-vectors.

    A collection is created by the producer and owned by whoever holds it;
    there is nothing to release.
    """

    def __init__(self, vectors: Iterable[FourVector] = ()):
        items = tuple(vectors)
        for v in items:
            if not isinstance(v, FourVector):
                raise TypeError(f"FourVectorCollection only holds FourVector, got {type(v).__name__}")
        self._vectors = items

    @property
    def n(self) -> int:
        return len(self._vectors)

    def __len__(self) -> int:
        return len(self._vectors)

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return FourVectorCollection(self._vectors[index])
        return self._vectors[index]

    def __iter__(self) -> Iterator[FourVector]:
        return iter(self._vectors)

    def __eq__(self, other) -> bool:
        if not isinstance(other, FourVectorCollection):
            return NotImplemented
        return self._vectors == other._vectors

    def __hash__(self) -> int:
        return hash(self._vectors)

    def __repr__(self) -> str:
        return f"FourVectorCollection(n={self.n}, vectors={list(self._vectors)!r})"

    def get(self, i: int) -> FourVector:
        """Bounds-checked access; negative indices are rejected."""
        if not isinstance(i, (int, np.integer)) or isinstance(i, bool):
            raise TypeError(f"Index must be an integer, got {type(i).__name__}")
        if i < 0 or i >= self.n:
            raise IndexError(f"Index {i} out of range for collection of {self.n} four-vectors")
        return self._vectors[i]

    def as_array(self) -> np.ndarray:
        if not self._vectors:
            return np.empty((0, 4))
        return np.vstack([v.as_array() for v in self._vectors])


def get_tlv(tlvs: FourVectorCollection, i: int) -> FourVector:
    """Return the i-th four-vector of a collection (0 <= i < n)."""
    if not isinstance(tlvs, FourVectorCollection):
        tlvs = FourVectorCollection(tlvs)
    return tlvs.get(i)
