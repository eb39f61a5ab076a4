import copy
import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil  # CPU count for n_jobs guardrail
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from topreco.config_manager.schema import CONFIG_SCHEMA
from topreco.utils.exceptions import ConfigurationError
from topreco.utils import constants


def merge_with_defaults(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Return a new config with user values layered over DEFAULT_CONFIG.

    Nested sections are merged key by key; keys starting with '_' (internal,
    e.g. propagated seeds) are carried over unchanged.
    """
    merged = copy.deepcopy(constants.DEFAULT_CONFIG)
    for key, value in (config or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(copy.deepcopy(value))
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ConfigurationManager:
    """
    Manages system configuration loading, validation, and access.
    Acts as the single source of truth for masses, smearing and execution settings.
    """

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: Optional[str] = None):
        """
        Initialize the ConfigurationManager.

        Args:
            config_path (str): Path to the user configuration JSON.
            schema_path (str): Optional JSON schema; the built-in schema is used when omitted.
        """
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("topreco.config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Main entry point. Loads config, validates schema/logic/resources,
        applies defaults, and propagates seeds.

        Returns:
            Dict[str, Any]: The fully validated and hydrated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        # 1. Load Files
        user_config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path) if self.schema_path else CONFIG_SCHEMA

        # 2. Structural Validation (Schema) on what the user wrote
        self._validate_schema(user_config)

        # 3. Defaults
        self.config = merge_with_defaults(user_config)

        # 4. Logical Validation (Physics & Bounds)
        self._validate_logic()

        # 5. Resource Validation
        self._validate_resources()

        # 6. Internal Seed Propagation (Reproducibility)
        self._propagate_seeds()

        return self.config

    def apply_overrides(self, overrides: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Layer section-level overrides (e.g. from the CLI) over the loaded
        config and re-run the logical checks and seed propagation.
        """
        for section, values in overrides.items():
            self.config.setdefault(section, {}).update(values)
        self._validate_logic()
        self._validate_resources()
        self._propagate_seeds()
        return self.config

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Validate an in-memory config the same way a file is validated."""
        manager = cls(config_path="<memory>")
        manager.schema = CONFIG_SCHEMA
        manager._validate_schema(config or {})
        manager.config = merge_with_defaults(config)
        manager._validate_logic()
        manager._validate_resources()
        manager._propagate_seeds()
        return manager.config

    def generate_run_id(self) -> str:
        """
        Generate or retrieve a unique run identifier based on timestamp.
        Used for directory naming and metadata.
        """
        if not self.run_id:
            timestamp = datetime.now()
            # Format: YYYYMMDD_HHMMSS
            self.run_id = timestamp.strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> None:
        """
        Save configuration artifacts to the run directory for full reproducibility.

        Saves:
        1. config_used.json: The exact config object in memory.
        2. config_hash.txt: SHA256 hash for versioning.
        3. run_metadata.json: Environment details (Python version, Platform, etc.).
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        # 1. Save Config
        with open(config_dir / constants.CONFIG_USED_FILE, 'w') as f:
            json.dump(self.config, f, indent=2)

        # 2. Calculate and Save Hash
        config_str = json.dumps(self.config, sort_keys=True)
        config_hash = hashlib.sha256(config_str.encode()).hexdigest()

        with open(config_dir / constants.CONFIG_HASH_FILE, 'w') as f:
            f.write(config_hash)

        # 3. Save Metadata (Environment Capture)
        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'config_hash': config_hash,
            'working_directory': os.getcwd()
        }

        with open(config_dir / constants.RUN_METADATA_FILE, 'w') as f:
            json.dump(metadata, f, indent=2)

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self, instance: Dict[str, Any]) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=instance, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Comprehensive logical validation."""
        # --- Masses Section ---
        masses = self.config['masses']
        m_top, m_w = masses['top'], masses['w']
        if m_top <= 0 or m_w <= 0:
            raise ConfigurationError(f"Masses must be positive, got top={m_top}, w={m_w}")
        if m_top <= m_w:
            raise ConfigurationError(f"Top mass ({m_top}) must exceed the W mass ({m_w}).")

        # --- Smearing Section ---
        smearing = self.config['smearing']
        if smearing['n_smear'] < 1:
            raise ConfigurationError(f"smearing.n_smear must be >= 1, got {smearing['n_smear']}")
        if smearing['seed'] < 0:
            raise ConfigurationError("Smearing seed must be non-negative.")

        # --- Reconstruction Section ---
        reco = self.config['reconstruction']
        if reco['min_btags'] not in (0, 1, 2):
            raise ConfigurationError(f"reconstruction.min_btags must be 0, 1 or 2, got {reco['min_btags']}")
        if reco['imag_tolerance'] <= 0:
            raise ConfigurationError(f"reconstruction.imag_tolerance must be > 0, got {reco['imag_tolerance']}")

        # --- Events Section ---
        events = self.config['events']
        max_events = events.get('max_events')
        if max_events is not None and max_events <= 0:
            raise ConfigurationError(f"events.max_events must be > 0 when provided, got {max_events}.")

        # Execution validation
        n_jobs = self.config['execution'].get('n_jobs', 1)
        if n_jobs == 0 or n_jobs < -1:
            raise ConfigurationError(f"execution.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")

    def _validate_resources(self) -> None:
        """Warn when more workers are requested than the machine has cores."""
        n_jobs = self.config['execution'].get('n_jobs', 1)
        cpu_count = psutil.cpu_count(logical=True) or 1
        if n_jobs > cpu_count:
            self.logger.warning(
                f"Configured n_jobs ({n_jobs}) exceeds available CPUs ({cpu_count}); capping to {cpu_count}."
            )
            self.config['execution']['n_jobs'] = cpu_count

    def _propagate_seeds(self) -> None:
        """
        Propagate the master smearing seed to internal components.
        """
        master_seed = self.config['smearing']['seed']

        self.config['_internal_seeds'] = {
            'smearing': master_seed,
        }
        self.logger.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
