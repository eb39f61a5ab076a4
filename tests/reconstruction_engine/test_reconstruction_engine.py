import json
import logging
import pytest
import pandas as pd
from joblib import parallel_backend
from unittest.mock import MagicMock

from topreco.config_manager.config_manager import ConfigurationManager
from topreco.kinematics.four_vector import FourVector
from topreco.reconstruction_engine import EventInputs, ReconstructionEngine
from topreco.utils import constants


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def events(ttbar_factory):
    kinematics = [
        dict(),
        dict(top_pt=120.0, top_eta=-0.3, antitop_pt=80.0, antitop_eta=1.1),
        dict(top_pt=20.0, top_phi=-2.0, antitop_pt=150.0, antitop_phi=0.5),
    ]
    inputs = []
    for number, params in enumerate(kinematics):
        truth = ttbar_factory(**params)
        inputs.append(EventInputs(
            lep=truth.lep, lepbar=truth.lepbar,
            pdg_id_lep=truth.pdg_id_lep, pdg_id_lepbar=truth.pdg_id_lepbar,
            jet=truth.b, jetbar=truth.bbar, isb_jet=True, isb_jetbar=True,
            emiss_x=truth.emiss_x, emiss_y=truth.emiss_y,
            event_number=100 + number,
        ))
    # Missing momentum no pair of neutrinos can balance
    unsolvable = inputs[0]
    inputs.append(EventInputs(
        lep=unsolvable.lep, lepbar=unsolvable.lepbar,
        pdg_id_lep=unsolvable.pdg_id_lep, pdg_id_lepbar=unsolvable.pdg_id_lepbar,
        jet=unsolvable.jet, jetbar=unsolvable.jetbar, isb_jet=True, isb_jetbar=False,
        emiss_x=10000.0, emiss_y=-10000.0, event_number=200,
    ))
    return inputs


@pytest.fixture
def config(tmp_path):
    return ConfigurationManager.from_dict({
        'smearing': {'n_smear': 20, 'seed': 7},
        'outputs': {'base_results_dir': str(tmp_path / "results")},
    })


def test_execute_writes_results_and_summary(config, events, mock_logger, narrow_histograms):
    engine = ReconstructionEngine(config, mock_logger, smearing=narrow_histograms)
    results = engine.execute(events, run_id="test_run")

    assert list(results.columns) == constants.RESULT_COLUMNS
    assert results[constants.EVENT_NUMBER_COLUMN].tolist() == [100, 101, 102, 200]
    assert not results['reconstructed'].iloc[-1]
    assert results['mtt'].isna().tolist()[-1]
    assert results['n_btags'].tolist() == [2, 2, 2, 1]

    stored = pd.read_parquet(engine.output_dir / constants.RECONSTRUCTED_TOPS_FILE)
    assert len(stored) == 4

    with open(engine.output_dir / constants.RECONSTRUCTION_SUMMARY_FILE) as f:
        summary = json.load(f)
    assert summary['run_id'] == "test_run"
    assert summary['mode'] == "smeared"
    assert summary['n_events'] == 4
    assert summary['n_without_reconstruction'] == 4 - summary['n_reconstructed']
    assert summary['smearing_source'] == "narrow"


def test_results_do_not_depend_on_worker_count(config, events, mock_logger, narrow_histograms):
    serial = ReconstructionEngine(config, mock_logger, smearing=narrow_histograms).execute(events, "serial")

    config['execution']['n_jobs'] = 2
    with parallel_backend('threading'):
        parallel = ReconstructionEngine(config, mock_logger, smearing=narrow_histograms).execute(events, "parallel")

    pd.testing.assert_frame_equal(serial, parallel)


def test_unsmeared_mode_without_histograms(config, events, mock_logger):
    config['outputs']['skip_dir_creation'] = True
    engine = ReconstructionEngine(config, mock_logger)
    results = engine.execute(events, run_id="plain")

    assert not engine.output_dir.exists()
    solved = results[results['reconstructed']]
    assert len(solved) >= 3
    assert (solved['mtt'] > 2 * constants.TOP_MASS - 1.0).all()


def test_unphysical_event_is_counted_not_fatal(config, events, mock_logger, narrow_histograms):
    # A zero-energy jet passes the finite-value checks of the loader
    broken = events[0]
    events.insert(1, EventInputs(
        lep=broken.lep, lepbar=broken.lepbar,
        pdg_id_lep=broken.pdg_id_lep, pdg_id_lepbar=broken.pdg_id_lepbar,
        jet=broken.jet, jetbar=FourVector(0.0, 0.0, 0.0, 0.0), isb_jet=True, isb_jetbar=True,
        emiss_x=broken.emiss_x, emiss_y=broken.emiss_y, event_number=150,
    ))

    engine = ReconstructionEngine(config, mock_logger, smearing=narrow_histograms)
    results = engine.execute(events, run_id="with_bad_row")

    assert results[constants.EVENT_NUMBER_COLUMN].tolist() == [100, 150, 101, 102, 200]
    row = results.set_index(constants.EVENT_NUMBER_COLUMN).loc[150]
    assert not row['reconstructed']
    assert pd.isna(row['mtt'])
    assert (engine.output_dir / constants.RECONSTRUCTED_TOPS_FILE).exists()

    with open(engine.output_dir / constants.RECONSTRUCTION_SUMMARY_FILE) as f:
        summary = json.load(f)
    assert summary['n_events'] == 5
    assert summary['n_without_reconstruction'] >= 2
