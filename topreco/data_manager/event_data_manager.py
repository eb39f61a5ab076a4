import math
import logging
import numpy as np
import pandas as pd
from pathlib import Path
from typing import List, Optional

from topreco.base.base_engine import BaseEngine
from topreco.kinematics.four_vector import FourVector
from topreco.kinematics.particles import validate_lepton_pair
from topreco.reconstruction_engine.reconstruction import EventInputs
from topreco.utils.exceptions import EventDataError, KinematicInputError
from topreco.utils.error_handling import handle_engine_errors
from topreco.utils.file_io import read_dataframe
from topreco.utils import constants

class EventDataManager(BaseEngine):
    """
    Loads and validates the per-event table and turns rows into
    reconstruction inputs.

    The table carries the two leptons (pt, eta, phi, pid), the two leading
    jets (pt, eta, phi, e, mv2c10 score) and the missing transverse energy
    (magnitude and azimuth) in flat columns, see constants.EVENT_COLUMNS.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.data: Optional[pd.DataFrame] = None
        self.events_cfg = config.get('events', {})
        self.btag_threshold = self.events_cfg.get('btag_threshold', 0.691)

    def _get_engine_directory_name(self) -> str:
        return constants.EVENT_VALIDATION_DIR

    @handle_engine_errors("Event Loading")
    def execute(self, file_path: Optional[str] = None) -> List[EventInputs]:
        """
        Execute the complete event loading and validation workflow.

        Args:
            file_path: Event table; defaults to events.file_path from config.

        Returns:
            List[EventInputs]: One entry per usable event.
        """
        self.logger.info("Starting Event Data Manager execution...")

        # 1. Load Data
        self.load_events(file_path or self.events_cfg.get('file_path'))

        # 2. Validation
        self.validate_columns()
        stats_df = self.validate_nan_inf()
        self.drop_unusable_leptons()

        # 3. Save column statistics
        self.save_table(stats_df, constants.EVENT_STATS_FILE)

        # 4. Build inputs
        events = [self.build_inputs(row) for row in self.data.itertuples(index=False)]
        self.logger.info(f"Prepared {len(events)} events for reconstruction")
        return events

    def load_events(self, file_path: Optional[str]) -> pd.DataFrame:
        """Load the event table, honouring events.max_events."""
        if not file_path:
            raise EventDataError("No event file given (events.file_path or --events).")
        path = Path(file_path)
        if not path.exists():
            raise EventDataError(f"Event file not found: {path}")

        self.logger.info(f"Loading events from {path}")
        try:
            self.data = read_dataframe(path)
        except ValueError as e:
            raise EventDataError(str(e)) from e

        if self.data.empty:
            raise EventDataError("Loaded event table is empty.")

        max_events = self.events_cfg.get('max_events')
        if max_events is not None and len(self.data) > max_events:
            self.logger.info(f"Limiting to the first {max_events} of {len(self.data)} events")
            self.data = self.data.iloc[:max_events].reset_index(drop=True)

        return self.data

    def validate_columns(self) -> None:
        missing = [c for c in constants.EVENT_COLUMNS if c not in self.data.columns]
        if missing:
            raise EventDataError(f"Missing required event columns: {missing}")

    def validate_nan_inf(self) -> pd.DataFrame:
        """Reject NaN/Inf in any required column and return per-column statistics."""
        subset = self.data[constants.EVENT_COLUMNS]
        numeric = subset.apply(pd.to_numeric, errors='coerce')

        bad_counts = (~np.isfinite(numeric.to_numpy(dtype=float))).sum(axis=0)
        stats_df = pd.DataFrame({
            'column': constants.EVENT_COLUMNS,
            'non_finite': bad_counts,
            'min': numeric.min().values,
            'max': numeric.max().values,
            'mean': numeric.mean().values,
        })

        offenders = stats_df.loc[stats_df['non_finite'] > 0, 'column'].tolist()
        if offenders:
            raise EventDataError(f"Non-finite or non-numeric values in columns: {offenders}")
        return stats_df

    def drop_unusable_leptons(self) -> None:
        """Drop events whose lepton codes are not an opposite-sign charged-lepton pair."""
        keep = []
        for pid0, pid1 in zip(self.data['lep_pid_0'], self.data['lep_pid_1']):
            try:
                validate_lepton_pair(int(pid0), int(pid1))
                keep.append(True)
            except KinematicInputError:
                keep.append(False)

        n_dropped = len(keep) - sum(keep)
        if n_dropped:
            self.logger.warning(f"Dropping {n_dropped} event(s) without an opposite-sign e/mu/tau pair")
            self.data = self.data.loc[keep].reset_index(drop=True)
        if self.data.empty:
            raise EventDataError("No events left after lepton-pair selection.")

    def build_inputs(self, row) -> EventInputs:
        """
        Build reconstruction inputs from one event row.

        The lepton with the positive code is taken as the antilepton, matching
        the sign convention of the event files. Leptons are built massless from
        (pt, eta, phi); jets from (pt, eta, phi, e).
        """
        leptons = []
        for i in (0, 1):
            vec = FourVector.from_pt_eta_phi_m(
                getattr(row, f'lep_pt_{i}'), getattr(row, f'lep_eta_{i}'), getattr(row, f'lep_phi_{i}'), 0.0
            )
            leptons.append((vec, int(getattr(row, f'lep_pid_{i}'))))

        lepbar, pid_lepbar = next(l for l in leptons if l[1] > 0)
        lep, pid_lep = next(l for l in leptons if l[1] <= 0)

        jets = []
        for i in (0, 1):
            vec = FourVector.from_pt_eta_phi_e(
                getattr(row, f'jet_pt_{i}'), getattr(row, f'jet_eta_{i}'),
                getattr(row, f'jet_phi_{i}'), getattr(row, f'jet_e_{i}')
            )
            jets.append((vec, float(getattr(row, f'jet_mv2c10_{i}')) > self.btag_threshold))

        met, met_phi = float(row.met_met), float(row.met_phi)

        return EventInputs(
            lep=lep,
            lepbar=lepbar,
            pdg_id_lep=pid_lep,
            pdg_id_lepbar=pid_lepbar,
            jet=jets[0][0],
            jetbar=jets[1][0],
            isb_jet=jets[0][1],
            isb_jetbar=jets[1][1],
            emiss_x=met * math.cos(met_phi),
            emiss_y=met * math.sin(met_phi),
            event_number=int(getattr(row, constants.EVENT_NUMBER_COLUMN)),
        )
