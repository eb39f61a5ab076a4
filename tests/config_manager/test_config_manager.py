import json
import hashlib
import pytest
from unittest.mock import patch

from topreco.config_manager.config_manager import ConfigurationManager, merge_with_defaults
from topreco.utils import constants
from topreco.utils.exceptions import ConfigurationError


@pytest.fixture
def valid_config(tmp_path):
    return {
        "masses": {"top": 173.0, "w": 80.4},
        "smearing": {"enabled": True, "histogram_file": None, "n_smear": 50, "seed": 11},
        "events": {"file_path": "events.parquet", "max_events": 10},
        "outputs": {"base_results_dir": str(tmp_path / "results")},
        "execution": {"n_jobs": 1},
    }


@pytest.fixture
def config_file(tmp_path, valid_config):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(valid_config))
    return path


def test_load_and_validate_applies_defaults(config_file):
    config = ConfigurationManager(str(config_file)).load_and_validate()
    assert config['masses']['top'] == 173.0
    assert config['reconstruction'] == constants.DEFAULT_CONFIG['reconstruction']
    assert config['events']['btag_threshold'] == 0.691
    assert config['_internal_seeds'] == {'smearing': 11}


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="File not found"):
        ConfigurationManager(str(tmp_path / "missing.json")).load_and_validate()


def test_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{ not json")
    with pytest.raises(ConfigurationError, match="Invalid JSON"):
        ConfigurationManager(str(path)).load_and_validate()


def test_unknown_key_fails_schema(tmp_path, valid_config):
    valid_config['masses']['bottom'] = 4.8
    path = tmp_path / "config.json"
    path.write_text(json.dumps(valid_config))
    with pytest.raises(ConfigurationError, match="Schema validation failed"):
        ConfigurationManager(str(path)).load_and_validate()


@pytest.mark.parametrize("section, values, message", [
    ("masses", {"top": 70.0}, "must exceed the W mass"),
    ("masses", {"w": -1.0}, "must be positive"),
    ("smearing", {"n_smear": 0}, "n_smear"),
    ("smearing", {"seed": -5}, "non-negative"),
    ("reconstruction", {"min_btags": 3}, "min_btags"),
    ("reconstruction", {"imag_tolerance": 0.0}, "imag_tolerance"),
    ("events", {"max_events": 0}, "max_events"),
    ("execution", {"n_jobs": 0}, "n_jobs"),
])
def test_logical_validation(section, values, message):
    with pytest.raises(ConfigurationError, match=message):
        ConfigurationManager.from_dict({section: values})


def test_n_jobs_capped_to_cpu_count():
    with patch('topreco.config_manager.config_manager.psutil.cpu_count', return_value=2):
        config = ConfigurationManager.from_dict({"execution": {"n_jobs": 16}})
    assert config['execution']['n_jobs'] == 2


def test_apply_overrides(config_file):
    manager = ConfigurationManager(str(config_file))
    manager.load_and_validate()
    config = manager.apply_overrides({"smearing": {"seed": 99}, "events": {"max_events": 3}})
    assert config['smearing']['seed'] == 99
    assert config['smearing']['n_smear'] == 50
    assert config['_internal_seeds']['smearing'] == 99
    assert config['events']['max_events'] == 3

    with pytest.raises(ConfigurationError):
        manager.apply_overrides({"execution": {"n_jobs": -3}})


def test_save_artifacts(config_file, tmp_path):
    manager = ConfigurationManager(str(config_file))
    config = manager.load_and_validate()
    manager.generate_run_id()
    manager.save_artifacts(str(tmp_path / "run"))

    config_dir = tmp_path / "run" / constants.CONFIG_DIR
    saved = json.loads((config_dir / constants.CONFIG_USED_FILE).read_text())
    assert saved == config

    expected_hash = hashlib.sha256(json.dumps(config, sort_keys=True).encode()).hexdigest()
    assert (config_dir / constants.CONFIG_HASH_FILE).read_text() == expected_hash

    metadata = json.loads((config_dir / constants.RUN_METADATA_FILE).read_text())
    assert metadata['run_id'] == manager.run_id
    assert metadata['config_hash'] == expected_hash


def test_run_id_is_stable(config_file):
    manager = ConfigurationManager(str(config_file))
    assert manager.generate_run_id() == manager.generate_run_id()


def test_merge_with_defaults_does_not_mutate():
    user = {"masses": {"top": 175.0}}
    merged = merge_with_defaults(user)
    assert merged['masses'] == {"top": 175.0, "w": constants.W_MASS}
    assert user == {"masses": {"top": 175.0}}
    merged['smearing']['seed'] = 0
    assert constants.DEFAULT_CONFIG['smearing']['seed'] == 1234
