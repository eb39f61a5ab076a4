# Built-in JSON schema for the reconstruction configuration.

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "masses": {
            "type": "object",
            "properties": {
                "top": {"type": "number"},
                "w": {"type": "number"},
            },
            "additionalProperties": False,
        },
        "smearing": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "histogram_file": {"type": ["string", "null"]},
                "n_smear": {"type": "integer"},
                "seed": {"type": "integer"},
            },
            "additionalProperties": False,
        },
        "reconstruction": {
            "type": "object",
            "properties": {
                "min_btags": {"type": "integer"},
                "try_both_assignments": {"type": "boolean"},
                "imag_tolerance": {"type": "number"},
            },
            "additionalProperties": False,
        },
        "events": {
            "type": "object",
            "properties": {
                "file_path": {"type": ["string", "null"]},
                "btag_threshold": {"type": "number"},
                "max_events": {"type": ["integer", "null"]},
            },
            "additionalProperties": False,
        },
        "logging": {
            "type": "object",
            "properties": {
                "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
                                                     "debug", "info", "warning", "error", "critical"]},
                "log_to_console": {"type": "boolean"},
                "log_to_file": {"type": "boolean"},
                "colorful_console": {"type": "boolean"},
                "log_dir": {"type": "string"},
            },
        },
        "outputs": {
            "type": "object",
            "properties": {
                "base_results_dir": {"type": "string"},
                "save_excel_copy": {"type": "boolean"},
                "skip_dir_creation": {"type": "boolean"},
            },
        },
        "execution": {
            "type": "object",
            "properties": {
                "n_jobs": {"type": "integer"},
            },
        },
    },
}
