# topreco/utils/constants.py

# --- Result Directories ---
CONFIG_DIR = "01_RunConfiguration"            # Run config, metadata, seeds
EVENT_VALIDATION_DIR = "02_EventValidation"   # Event table checks
RECONSTRUCTION_DIR = "03_TopReconstruction"   # Reconstructed tops + summary

# --- File Names ---
CONFIG_USED_FILE = "config_used.json"
CONFIG_HASH_FILE = "config_hash.txt"
RUN_METADATA_FILE = "run_metadata.json"
RECONSTRUCTED_TOPS_FILE = "reconstructed_tops.parquet"
RECONSTRUCTION_SUMMARY_FILE = "reconstruction_summary.json"
EVENT_STATS_FILE = "event_column_stats.parquet"
LOG_FILE = "topreco.log"

# --- Physics Defaults (GeV) ---
TOP_MASS = 172.5
W_MASS = 80.4
ELECTRON_MASS = 0.000511
MUON_MASS = 0.105658
TAU_MASS = 1.77686

# PDG codes of the charged leptons accepted as inputs
ELECTRON_PDG_ID = 11
MUON_PDG_ID = 13
TAU_PDG_ID = 15
LEPTON_MASSES = {
    ELECTRON_PDG_ID: ELECTRON_MASS,
    MUON_PDG_ID: MUON_MASS,
    TAU_PDG_ID: TAU_MASS,
}

# --- Smearing Histogram Names ---
HIST_JET_ENERGY = "jet_energy"
HIST_JET_ENERGY_B = "jet_energy_b"
HIST_JET_ENERGY_LIGHT = "jet_energy_light"
HIST_JET_ANGLE = "jet_angle"
HIST_LEP_ENERGY = "lep_energy"
HIST_LEP_ANGLE = "lep_angle"
HIST_W_MASS = "w_mass"
HIST_MLB = "mlb"

# Suffix used for flavour-specific lepton histograms, e.g. lep_energy_mu
LEPTON_FLAVOUR_SUFFIX = {
    ELECTRON_PDG_ID: "e",
    MUON_PDG_ID: "mu",
    TAU_PDG_ID: "tau",
}

# --- Event Table Columns ---
EVENT_NUMBER_COLUMN = "event_number"
LEPTON_FIELDS = ["pt", "eta", "phi", "pid"]
JET_FIELDS = ["pt", "eta", "phi", "e", "mv2c10"]
MET_COLUMNS = ["met_met", "met_phi"]

EVENT_COLUMNS = (
    [EVENT_NUMBER_COLUMN]
    + [f"lep_{f}_{i}" for i in (0, 1) for f in LEPTON_FIELDS]
    + [f"jet_{f}_{i}" for i in (0, 1) for f in JET_FIELDS]
    + MET_COLUMNS
)

# Columns written for every reconstructed event
RESULT_COLUMNS = [
    EVENT_NUMBER_COLUMN,
    "reconstructed",
    "n_btags",
    "top_px", "top_py", "top_pz", "top_e",
    "antitop_px", "antitop_py", "antitop_pz", "antitop_e",
    "mtt",
]

# --- Default Configuration ---
DEFAULT_CONFIG = {
    "masses": {
        "top": TOP_MASS,
        "w": W_MASS,
    },
    "smearing": {
        "enabled": True,
        "histogram_file": None,
        "n_smear": 100,
        "seed": 1234,
    },
    "reconstruction": {
        "min_btags": 0,
        "try_both_assignments": True,
        "imag_tolerance": 1e-6,
    },
    "events": {
        "file_path": None,
        "btag_threshold": 0.691,
        "max_events": None,
    },
    "logging": {
        "level": "INFO",
        "log_to_console": True,
        "log_to_file": True,
        "colorful_console": True,
        "log_dir": "logs",
    },
    "outputs": {
        "base_results_dir": "results",
        "save_excel_copy": False,
    },
    "execution": {
        "n_jobs": 1,
    },
}
