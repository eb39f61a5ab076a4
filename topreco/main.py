#!/usr/bin/env python
"""
Top-pair Reconstruction - Main Entry Point
Reads an event table, reconstructs top and anti-top per event and stores the results.
"""
import sys
import argparse
import traceback
from pathlib import Path

from topreco.config_manager import ConfigurationManager
from topreco.data_manager import EventDataManager
from topreco.logging_config import LoggingConfigurator
from topreco.reconstruction_engine import ReconstructionEngine
from topreco.smearing import load_smearing_histos
from topreco.utils.exceptions import TopRecoException


def parse_arguments(argv=None):
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Dilepton top-pair reconstruction (Sonnenschein with detector smearing)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--events",
        type=str,
        default=None,
        help="Event table (parquet/csv/xlsx); overrides events.file_path"
    )

    parser.add_argument(
        "--histos",
        type=str,
        default=None,
        help="Smearing histogram JSON; overrides smearing.histogram_file"
    )

    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Results directory; overrides outputs.base_results_dir"
    )

    parser.add_argument(
        "--max-events",
        type=int,
        default=None,
        help="Reconstruct at most this many events"
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Master smearing seed; overrides smearing.seed"
    )

    parser.add_argument(
        "--n-jobs",
        type=int,
        default=None,
        help="Parallel workers; overrides execution.n_jobs"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration, histograms and events without reconstructing"
    )

    return parser.parse_args(argv)


def collect_overrides(args: argparse.Namespace) -> dict:
    """Map CLI flags onto config sections."""
    overrides = {}
    flags = [
        ("events", "file_path", args.events),
        ("smearing", "histogram_file", args.histos),
        ("outputs", "base_results_dir", args.output),
        ("events", "max_events", args.max_events),
        ("smearing", "seed", args.seed),
        ("execution", "n_jobs", args.n_jobs),
    ]
    for section, key, value in flags:
        if value is not None:
            overrides.setdefault(section, {})[key] = value
    if args.verbose:
        overrides.setdefault("logging", {})["level"] = "DEBUG"
    return overrides


def main(argv=None):
    """
    Main orchestration function.

    Returns:
        int: Exit code (0 for success, 1 for errors)
    """
    logger = None
    logging_configurator = None

    try:
        args = parse_arguments(argv)

        # ---------------------------------------------------------------
        # PHASE 0: INITIALIZATION & VALIDATION
        # ---------------------------------------------------------------

        # 1. Load and validate configuration
        config_manager = ConfigurationManager(config_path=args.config)
        config_manager.load_and_validate()
        config = config_manager.apply_overrides(collect_overrides(args))

        # 2. Setup logging
        logging_configurator = LoggingConfigurator(config)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('topreco.pipeline')

        logger.info("Reconstruction initialization started")
        logger.info(f"Configuration loaded from: {args.config}")

        # 3. Setup run directory and save configuration artifacts
        run_dir = Path(config['outputs']['base_results_dir']).absolute()
        run_dir.mkdir(parents=True, exist_ok=True)
        run_id = config_manager.generate_run_id()
        config_manager.save_artifacts(str(run_dir))
        logger.info(f"Run ID: {run_id}")
        logger.info(f"Output Directory: {run_dir}")

        # 4. Smearing histograms (optional)
        smearing = None
        histo_file = config['smearing'].get('histogram_file')
        if config['smearing']['enabled'] and histo_file:
            smearing = load_smearing_histos(histo_file)
        else:
            logger.info("No smearing histograms configured; using unsmeared Sonnenschein solutions")

        # ---------------------------------------------------------------
        # PHASE 1: EVENT LOADING
        # ---------------------------------------------------------------
        data_manager = EventDataManager(config, logger)
        events = data_manager.execute()

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without reconstruction.")
            print("\n[SUCCESS] Configuration, histograms and events validated successfully.")
            return 0

        # ---------------------------------------------------------------
        # PHASE 2: RECONSTRUCTION
        # ---------------------------------------------------------------
        engine = ReconstructionEngine(config, logger, smearing=smearing)
        results = engine.execute(events, run_id)

        n_bad = int((~results['reconstructed']).sum()) if len(results) else 0
        print(f"Number of events w/o reconstruction: {n_bad}\n")
        print(f"[SUCCESS] Results saved to: {engine.output_dir}")
        return 0

    except TopRecoException as e:
        msg = f"Reconstruction Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Reconstruction interrupted by user.")
        if logger:
            logger.warning("Reconstruction interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        msg = f"Unexpected Error: {str(e)}"
        print(f"\n[CRITICAL] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    finally:
        if logging_configurator:
            logging_configurator.shutdown()


if __name__ == "__main__":
    sys.exit(main())
