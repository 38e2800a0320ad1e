# informality_models/cli/estimate_smm.py
"""
Command-line interface for SMM estimation of (b_F, b_I, κ, σ_pref).

Reads calibrated parameters, grid and estimation settings and the
empirical targets; optionally bootstraps standard errors from the
empirical panel. Ctrl-C stops the search after the current evaluation
and still writes the best point found.

Example:
    $ python -m informality_models.cli.estimate_smm --params config/params.json \
          --targets data/targets.json --panel data/panel.csv
"""

import argparse
import dataclasses
import logging
import os
import signal
import sys
import threading

from informality_models.config.economic_params import INFORMAL, load_model_params
from informality_models.config.estimation_config import (
    EstimationConfig,
    MomentConfig,
    SimulationConfig,
    load_config_section,
)
from informality_models.config.vfi_config import load_grid_config
from informality_models.io.file_utils import save_json_file
from informality_models.moment_calculator.targets import load_target_moments

logger = logging.getLogger(__name__)


def entry_shares_from_targets(params, targets):
    """Entry-sector distribution matching the targeted informality rate."""
    rate = targets.get("informality_rate").value
    return tuple(rate if name == INFORMAL else 1.0 - rate for name in params.sector_names)


def run_estimation(args, cancel_event: threading.Event) -> None:
    """Orchestrate estimation, bootstrap and table export."""
    from informality_models.estimation.smm import SMMEstimator, build_parameter_table
    from informality_models.io.panel_io import load_panel_csv
    from informality_models.io.tables import (
        generate_latex_parameter_table,
        save_moment_fit_csv,
        save_parameter_table_csv,
    )

    params = load_model_params(args.params)
    grid_config = load_grid_config(args.grid_config, args.section)
    est_config = load_config_section(args.estimation_config, "estimation", EstimationConfig)
    sim_config = load_config_section(args.estimation_config, "simulation", SimulationConfig)
    moment_config = load_config_section(args.estimation_config, "moments", MomentConfig)
    targets = load_target_moments(args.targets)

    if sim_config.initial_sector_shares is None and params.n_sectors == 2:
        sim_config = dataclasses.replace(
            sim_config, initial_sector_shares=entry_shares_from_targets(params, targets)
        )
        logger.info("Entry-sector shares set from targets: %s", sim_config.initial_sector_shares)

    estimator = SMMEstimator(
        params, grid_config, targets, est_config, sim_config, moment_config
    )
    result = estimator.estimate(cancel_event=cancel_event)

    if args.panel and est_config.n_bootstrap > 0 and not cancel_event.is_set():
        panel = load_panel_csv(args.panel, params.sector_names)
        boot = estimator.bootstrap(result, panel, cancel_event=cancel_event)
        logger.info(
            "Bootstrap finished: %d/%d draws (%d not converged, %d discarded), status=%s",
            boot.n_completed, boot.n_requested, boot.n_not_converged, boot.n_discarded,
            boot.status.value,
        )

    os.makedirs(args.output_dir, exist_ok=True)
    rows = build_parameter_table(result)
    save_parameter_table_csv(rows, os.path.join(args.output_dir, "parameters.csv"))
    with open(os.path.join(args.output_dir, "parameters.tex"), "w") as f:
        f.write(generate_latex_parameter_table(rows))
    if result.model_moments is not None:
        save_moment_fit_csv(
            result.targets, result.model_moments,
            os.path.join(args.output_dir, "moment_fit.csv"),
        )

    save_json_file(
        {
            "theta": result.theta.tolist(),
            "q_min": result.q_min,
            "status": result.status.value,
            "weakly_identified": result.weakly_identified,
            "n_evals": result.n_evals,
            "wall_time": result.wall_time,
            "missing_moment_counts": result.missing_moment_counts,
            "standard_errors": result.standard_errors.tolist(),
            "bootstrap_status": (
                None if result.bootstrap is None else result.bootstrap.status.value
            ),
            "bootstrap_not_converged": (
                None if result.bootstrap is None else result.bootstrap.n_not_converged
            ),
            "bootstrap_discarded": (
                None if result.bootstrap is None else result.bootstrap.n_discarded
            ),
        },
        os.path.join(args.output_dir, "estimation_summary.json"),
    )
    save_json_file(result.params.to_dict(), os.path.join(args.output_dir, "estimated_params.json"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Estimate the sector-choice model by SMM")
    parser.add_argument('--params', type=str, required=True,
                        help="JSON file with calibrated parameters (estimated fields are starting values).")
    parser.add_argument('--targets', type=str, required=True,
                        help="Versioned JSON file with target moments.")
    parser.add_argument('--panel', type=str, default=None,
                        help="Empirical person-period CSV for bootstrap SEs.")
    parser.add_argument('--grid-config', type=str, default="config/grids.json")
    parser.add_argument('--section', type=str, default="estimation")
    parser.add_argument('--estimation-config', type=str, default="config/estimation.json")
    parser.add_argument('--output-dir', type=str, default="results/smm")
    return parser


def main(argv=None):
    """Main entry point for the SMM CLI."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)

    cancel_event = threading.Event()

    def _request_stop(signum, frame):
        logger.warning("Interrupt received; stopping after the current evaluation.")
        cancel_event.set()

    signal.signal(signal.SIGINT, _request_stop)

    try:
        run_estimation(args, cancel_event)
    except Exception as e:
        logger.error(f"Estimation failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
