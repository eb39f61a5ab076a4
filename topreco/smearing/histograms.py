import json
import logging
import os
import numpy as np
import jsonschema
from collections import abc
from pathlib import Path
from scipy import stats
from typing import Any, Dict, Iterator, Optional, Sequence, Union

from topreco.utils.exceptions import SmearingHistogramError
from topreco.utils.file_io import save_json

logger = logging.getLogger("topreco.smearing")

HISTOGRAM_FILE_SCHEMA = {
    "type": "object",
    "required": ["histograms"],
    "properties": {
        "metadata": {"type": "object"},
        "histograms": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {
                "type": "object",
                "required": ["edges", "counts"],
                "properties": {
                    "edges": {"type": "array", "items": {"type": "number"}, "minItems": 2},
                    "counts": {"type": "array", "items": {"type": "number", "minimum": 0}, "minItems": 1},
                },
            },
        },
    },
}


class SmearingHistogram:
    """
    One binned distribution used to model detector resolution.

    Sampling and density evaluation go through scipy's rv_histogram, which
    treats the distribution as uniform within each bin.
    """

    def __init__(self, name: str, edges: Sequence[float], counts: Sequence[float]):
        self.name = name
        self.edges = np.asarray(edges, dtype=float)
        self.counts = np.asarray(counts, dtype=float)
        self._validate()
        self._dist = stats.rv_histogram((self.counts, self.edges))

    def _validate(self) -> None:
        if self.edges.ndim != 1 or self.counts.ndim != 1:
            raise SmearingHistogramError(f"Histogram '{self.name}': edges and counts must be 1-D")
        if len(self.edges) != len(self.counts) + 1:
            raise SmearingHistogramError(
                f"Histogram '{self.name}': expected {len(self.counts) + 1} edges for "
                f"{len(self.counts)} bins, got {len(self.edges)}"
            )
        if not np.all(np.isfinite(self.edges)) or not np.all(np.isfinite(self.counts)):
            raise SmearingHistogramError(f"Histogram '{self.name}': non-finite edges or counts")
        if np.any(np.diff(self.edges) <= 0):
            raise SmearingHistogramError(f"Histogram '{self.name}': edges must be strictly increasing")
        if np.any(self.counts < 0) or self.counts.sum() <= 0:
            raise SmearingHistogramError(f"Histogram '{self.name}': counts must be non-negative with a positive sum")

    @classmethod
    def from_samples(cls, name: str, samples: Sequence[float], bins: int = 50,
                     range: Optional[Sequence[float]] = None) -> "SmearingHistogram":
        """Histogram a set of truth-level samples (e.g. E_true / E_reco)."""
        counts, edges = np.histogram(np.asarray(samples, dtype=float), bins=bins, range=range)
        return cls(name, edges, counts)

    def sample(self, rng: np.random.RandomState, size: Optional[int] = None):
        """Draw from the distribution using the caller's random state."""
        values = self._dist.rvs(size=size, random_state=rng)
        return float(values) if size is None else np.asarray(values)

    def density(self, x: float) -> float:
        """Normalised probability density at x (zero outside the edges)."""
        return float(self._dist.pdf(x))

    @property
    def mean(self) -> float:
        return float(self._dist.mean())

    def to_dict(self) -> Dict[str, Any]:
        return {"edges": self.edges.tolist(), "counts": self.counts.tolist()}

    def __repr__(self) -> str:
        return f"SmearingHistogram(name={self.name!r}, bins={len(self.counts)}, range=[{self.edges[0]}, {self.edges[-1]}])"


class SmearingHistograms(abc.Mapping):
    """
    Read-only set of smearing histograms keyed by name.

    Lookups with `first_of` try flavour- or tag-specific names before the
    generic one, so a file may carry only the generic distributions.
    """

    def __init__(self, histograms: Dict[str, SmearingHistogram], source: Optional[str] = None,
                 metadata: Optional[Dict[str, Any]] = None):
        self._histograms = dict(histograms)
        self.source = source
        self.metadata = dict(metadata or {})

    def __getitem__(self, name: str) -> SmearingHistogram:
        return self._histograms[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._histograms)

    def __len__(self) -> int:
        return len(self._histograms)

    def first_of(self, *names: str) -> Optional[SmearingHistogram]:
        for name in names:
            if name in self._histograms:
                return self._histograms[name]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata,
            "histograms": {name: h.to_dict() for name, h in self._histograms.items()},
        }

    def save(self, path: Union[str, Path]) -> Path:
        """Write the histograms in the JSON layout read by load_smearing_histos."""
        out = save_json(self.to_dict(), Path(path))
        logger.info(f"Saved {len(self)} smearing histograms to {out}")
        return out

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], source: Optional[str] = None) -> "SmearingHistograms":
        try:
            jsonschema.validate(instance=payload, schema=HISTOGRAM_FILE_SCHEMA)
        except jsonschema.ValidationError as e:
            raise SmearingHistogramError(f"Smearing histogram file {source or ''} failed validation: {e.message}")

        histograms = {
            name: SmearingHistogram(name, entry["edges"], entry["counts"])
            for name, entry in payload["histograms"].items()
        }
        return cls(histograms, source=source, metadata=payload.get("metadata"))


def load_smearing_histos(fname: Union[str, Path]) -> SmearingHistograms:
    """
    Load detector-resolution histograms from a JSON file.

    Args:
        fname: Path to the histogram file.

    Returns:
        SmearingHistograms: The loaded histograms; pass them to the
        reconstruction explicitly.

    Raises:
        SmearingHistogramError: If the file is missing, not JSON, or malformed.
    """
    path = str(fname)
    if not os.path.exists(path):
        raise SmearingHistogramError(f"Smearing histogram file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        raise SmearingHistogramError(f"Invalid JSON in {path}: {str(e)}")

    histograms = SmearingHistograms.from_dict(payload, source=path)
    logger.info(f"Loaded {len(histograms)} smearing histograms from {path}: {sorted(histograms)}")
    return histograms
