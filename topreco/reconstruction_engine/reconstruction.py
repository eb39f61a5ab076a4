import logging
import math
import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from topreco.config_manager.config_manager import merge_with_defaults
from topreco.kinematics.four_vector import FourVector, FourVectorCollection
from topreco.kinematics.particles import validate_four_vector, validate_lepton_pair, with_lepton_mass
from topreco.smearing.histograms import SmearingHistograms
from topreco.smearing.smearer import DetectorSmearer
from topreco.sonnenschein.solver import NeutrinoSolution, solve
from topreco.utils.exceptions import KinematicInputError, ReconstructionError


@dataclass(frozen=True)
class EventInputs:
    """
    Everything the reconstruction needs for one event.

    `lep` belongs to the anti-top decay (with `jetbar`), `lepbar` to the top
    decay (with `jet`).
    """
    lep: FourVector
    lepbar: FourVector
    pdg_id_lep: int
    pdg_id_lepbar: int
    jet: FourVector
    jetbar: FourVector
    isb_jet: bool
    isb_jetbar: bool
    emiss_x: float
    emiss_y: float
    event_number: int = -1

    @property
    def n_btags(self) -> int:
        return int(bool(self.isb_jet)) + int(bool(self.isb_jetbar))


@dataclass(frozen=True)
class _Assignment:
    b: FourVector
    bbar: FourVector
    isb_b: bool
    isb_bbar: bool


class TopReconstructor:
    """
    Reconstructs top and anti-top four-vectors of dilepton events.

    Without smearing histograms (or with smearing disabled) each jet
    assignment is solved once and the smallest-m(t tbar) solution wins. With
    histograms, every assignment is solved `n_smear` times on smeared inputs,
    solutions are weighted by the m(l, b) density and averaged; the assignment
    collecting the largest total weight wins.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 smearing: Optional[SmearingHistograms] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = merge_with_defaults(config)
        self.smearing = smearing
        self.logger = logger or logging.getLogger("topreco.reconstruction")

        self.m_top = self.config['masses']['top']
        self.m_w = self.config['masses']['w']
        self.n_smear = self.config['smearing']['n_smear']
        self.default_seed = self.config.get('_internal_seeds', {}).get('smearing', self.config['smearing']['seed'])
        reco_cfg = self.config['reconstruction']
        self.min_btags = reco_cfg['min_btags']
        self.try_both_assignments = reco_cfg['try_both_assignments']
        self.imag_tolerance = reco_cfg['imag_tolerance']

    @property
    def uses_smearing(self) -> bool:
        return self.smearing is not None and len(self.smearing) > 0 and self.config['smearing']['enabled']

    def reconstruct(self, event: EventInputs, seed: Optional[int] = None) -> FourVectorCollection:
        """
        Reconstruct one event.

        Returns:
            FourVectorCollection: (top, anti-top), or empty when the event has
            no physical solution or too few b-tags.

        Raises:
            KinematicInputError: If the inputs are not usable.
        """
        event = self.prepare(event)
        if event.n_btags < self.min_btags:
            self.logger.debug(
                f"Event {event.event_number}: {event.n_btags} b-tag(s) < required {self.min_btags}; skipped"
            )
            return FourVectorCollection()

        if self.uses_smearing:
            return self._reco_tops(event, self.default_seed if seed is None else seed)
        return self._sonnenschein(event)

    def sonnenschein(self, event: EventInputs) -> FourVectorCollection:
        """Unsmeared reconstruction: the smallest-m(t tbar) solution over assignments."""
        return self._sonnenschein(self.prepare(event))

    def reco_tops(self, event: EventInputs, seed: Optional[int] = None) -> FourVectorCollection:
        """Smeared, m(l, b)-weighted reconstruction (requires histograms)."""
        if self.smearing is None:
            raise ReconstructionError("Smeared reconstruction needs smearing histograms")
        return self._reco_tops(self.prepare(event), self.default_seed if seed is None else seed)

    def solutions(self, event: EventInputs) -> List[NeutrinoSolution]:
        """All unsmeared solutions for the given jet assignment, sorted by m(t tbar)."""
        event = self.prepare(event)
        assignment = self._assignments(event)[0]
        return self._solve(event.lepbar, event.lep, assignment.b, assignment.bbar,
                           event.emiss_x, event.emiss_y, self.m_w, self.m_w)

    def prepare(self, event: EventInputs) -> EventInputs:
        """Validate inputs and put the leptons on their mass shell."""
        validate_lepton_pair(event.pdg_id_lep, event.pdg_id_lepbar)
        for label in ('lep', 'lepbar', 'jet', 'jetbar'):
            validate_four_vector(getattr(event, label), label)
        if not (math.isfinite(event.emiss_x) and math.isfinite(event.emiss_y)):
            raise KinematicInputError(f"Missing transverse momentum must be finite, got ({event.emiss_x}, {event.emiss_y})")

        return EventInputs(
            lep=with_lepton_mass(event.lep, event.pdg_id_lep),
            lepbar=with_lepton_mass(event.lepbar, event.pdg_id_lepbar),
            pdg_id_lep=int(event.pdg_id_lep),
            pdg_id_lepbar=int(event.pdg_id_lepbar),
            jet=event.jet,
            jetbar=event.jetbar,
            isb_jet=bool(event.isb_jet),
            isb_jetbar=bool(event.isb_jetbar),
            emiss_x=float(event.emiss_x),
            emiss_y=float(event.emiss_y),
            event_number=event.event_number,
        )

    def _assignments(self, event: EventInputs) -> List[_Assignment]:
        assignments = [_Assignment(event.jet, event.jetbar, event.isb_jet, event.isb_jetbar)]
        if self.try_both_assignments:
            assignments.append(_Assignment(event.jetbar, event.jet, event.isb_jetbar, event.isb_jet))
        return assignments

    def _solve(self, lepbar: FourVector, lep: FourVector, b: FourVector, bbar: FourVector,
               emiss_x: float, emiss_y: float, m_w_plus: float, m_w_minus: float) -> List[NeutrinoSolution]:
        return solve(
            lepbar, lep, b, bbar, emiss_x, emiss_y,
            m_top=self.m_top,
            m_w_plus=m_w_plus,
            m_w_minus=m_w_minus,
            imag_tolerance=self.imag_tolerance,
        )

    def _sonnenschein(self, event: EventInputs) -> FourVectorCollection:
        best = None
        for assignment in self._assignments(event):
            solutions = self._solve(event.lepbar, event.lep, assignment.b, assignment.bbar,
                                    event.emiss_x, event.emiss_y, self.m_w, self.m_w)
            if solutions and (best is None or solutions[0].mtt < best.mtt):
                best = solutions[0]

        if best is None:
            self.logger.debug(f"Event {event.event_number}: no Sonnenschein solution")
            return FourVectorCollection()
        return FourVectorCollection([best.top, best.antitop])

    def _reco_tops(self, event: EventInputs, seed: int) -> FourVectorCollection:
        rng = np.random.RandomState(seed)
        smearer = DetectorSmearer(self.smearing, rng)

        best_weight = 0.0
        best_momenta = None
        for assignment in self._assignments(event):
            sum_w = 0.0
            top_p = np.zeros(3)
            antitop_p = np.zeros(3)
            visible_before = assignment.b + assignment.bbar + event.lepbar + event.lep

            for _ in range(self.n_smear):
                b = smearer.smear_jet(assignment.b, assignment.isb_b)
                bbar = smearer.smear_jet(assignment.bbar, assignment.isb_bbar)
                lepbar = smearer.smear_lepton(event.lepbar, event.pdg_id_lepbar)
                lep = smearer.smear_lepton(event.lep, event.pdg_id_lep)
                if b is None or bbar is None or lepbar is None or lep is None:
                    continue

                # Visible momentum removed by the smearing reappears as missing momentum
                visible_after = b + bbar + lepbar + lep
                emiss_x = event.emiss_x + visible_before.px - visible_after.px
                emiss_y = event.emiss_y + visible_before.py - visible_after.py

                m_w_plus = smearer.sample_w_mass(self.m_w)
                m_w_minus = smearer.sample_w_mass(self.m_w)
                solutions = self._solve(lepbar, lep, b, bbar, emiss_x, emiss_y, m_w_plus, m_w_minus)
                if not solutions:
                    continue

                weight = smearer.mlb_weight(lepbar, b) * smearer.mlb_weight(lep, bbar)
                if weight <= 0.0:
                    continue

                sum_w += weight
                top_p += weight * solutions[0].top.momentum
                antitop_p += weight * solutions[0].antitop.momentum

            if sum_w > best_weight:
                best_weight = sum_w
                best_momenta = (top_p / sum_w, antitop_p / sum_w)

        if best_momenta is None:
            self.logger.debug(f"Event {event.event_number}: no weighted solution in {self.n_smear} smearings")
            return FourVectorCollection()

        top, antitop = (self._on_shell(p) for p in best_momenta)
        return FourVectorCollection([top, antitop])

    def _on_shell(self, momentum: np.ndarray) -> FourVector:
        px, py, pz = (float(v) for v in momentum)
        return FourVector(px, py, pz, math.sqrt(px * px + py * py + pz * pz + self.m_top * self.m_top))
