import math
import logging
import pandas as pd
from joblib import Parallel, delayed
from typing import Any, Dict, List, Optional

from topreco.base.base_engine import BaseEngine
from topreco.kinematics.four_vector import FourVectorCollection
from topreco.reconstruction_engine.reconstruction import EventInputs, TopReconstructor
from topreco.smearing.histograms import SmearingHistograms
from topreco.utils.error_handling import handle_engine_errors
from topreco.utils.exceptions import KinematicInputError
from topreco.utils import constants

logger = logging.getLogger("topreco.reconstruction")


def _reconstruct_event(config: Dict[str, Any], smearing: Optional[SmearingHistograms],
                       event: EventInputs, seed: int) -> Dict[str, Any]:
    """Reconstruct one event into a result row (runs inside joblib workers)."""
    try:
        tops = TopReconstructor(config, smearing).reconstruct(event, seed=seed)
    except KinematicInputError as e:
        # Unphysical rows count as events without reconstruction
        logger.warning(f"Event {event.event_number}: unusable inputs ({e})")
        tops = FourVectorCollection()
    row = {
        constants.EVENT_NUMBER_COLUMN: event.event_number,
        'reconstructed': len(tops) == 2,
        'n_btags': event.n_btags,
    }
    if len(tops) == 2:
        top, antitop = tops
        row.update({
            'top_px': top.px, 'top_py': top.py, 'top_pz': top.pz, 'top_e': top.e,
            'antitop_px': antitop.px, 'antitop_py': antitop.py, 'antitop_pz': antitop.pz, 'antitop_e': antitop.e,
            'mtt': (top + antitop).m,
        })
    else:
        row.update({col: math.nan for col in constants.RESULT_COLUMNS[3:]})
    return row


class ReconstructionEngine(BaseEngine):
    """
    Runs the top-pair reconstruction over a batch of events and stores the
    reconstructed four-vectors plus a run summary.
    """

    def __init__(self, config: dict, logger: logging.Logger, smearing: Optional[SmearingHistograms] = None):
        super().__init__(config, logger)
        self.smearing = smearing

    def _get_engine_directory_name(self) -> str:
        return constants.RECONSTRUCTION_DIR

    @handle_engine_errors("Top Reconstruction")
    def execute(self, events: List[EventInputs], run_id: str) -> pd.DataFrame:
        """
        Reconstruct every event.

        Parameters:
            events: Prepared event inputs (see EventDataManager.build_inputs).
            run_id: Run identifier.

        Returns:
            DataFrame with one row per event (RESULT_COLUMNS).
        """
        n_jobs = self.config.get('execution', {}).get('n_jobs', 1)
        base_seed = self.config.get('_internal_seeds', {}).get('smearing', self.config['smearing']['seed'])
        mode = "smeared" if TopReconstructor(self.config, self.smearing).uses_smearing else "unsmeared"
        self.logger.info(f"Reconstructing {len(events)} events ({mode}, n_jobs={n_jobs})...")

        # Seed by position so results do not depend on how events are spread over workers
        rows = Parallel(n_jobs=n_jobs)(
            delayed(_reconstruct_event)(self.config, self.smearing, event, base_seed + i)
            for i, event in enumerate(events)
        )
        results = pd.DataFrame(rows, columns=constants.RESULT_COLUMNS)

        n_bad = int((~results['reconstructed']).sum()) if len(results) else 0
        summary = {
            'run_id': run_id,
            'mode': mode,
            'n_events': len(results),
            'n_reconstructed': len(results) - n_bad,
            'n_without_reconstruction': n_bad,
            'efficiency': (len(results) - n_bad) / len(results) if len(results) else 0.0,
            'mean_mtt': float(results['mtt'].mean()) if len(results) - n_bad > 0 else None,
            'smearing_source': getattr(self.smearing, 'source', None),
        }

        self.save_table(results, constants.RECONSTRUCTED_TOPS_FILE)
        self.save_summary(summary, constants.RECONSTRUCTION_SUMMARY_FILE)

        self.logger.info(
            f"Reconstruction complete: {summary['n_reconstructed']}/{summary['n_events']} events, "
            f"number of events w/o reconstruction: {n_bad}"
        )
        return results
