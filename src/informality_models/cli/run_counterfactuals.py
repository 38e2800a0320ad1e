# informality_models/cli/run_counterfactuals.py
"""
Command-line interface for counterfactual experiments.

Solves the baseline at the given (typically estimated) parameters, runs
each configured experiment on the same grid, income process and shocks,
and writes the welfare comparison tables and loss-aversion bounds.

Example:
    $ python -m informality_models.cli.run_counterfactuals \
          --params results/smm/estimated_params.json
"""

import argparse
import logging
import os
import sys

from informality_models.config.economic_params import load_model_params
from informality_models.config.estimation_config import (
    CounterfactualConfig,
    MomentConfig,
    SimulationConfig,
    load_config_section,
)
from informality_models.config.vfi_config import load_grid_config
from informality_models.core.errors import MissingMomentError
from informality_models.io.file_utils import save_json_file

logger = logging.getLogger(__name__)


def run_counterfactuals(args) -> None:
    """Orchestrate baseline, experiments and exports."""
    from informality_models.counterfactual.engine import BaselineRun, CounterfactualEngine
    from informality_models.counterfactual.loss_aversion import compute_loss_aversion
    from informality_models.io.tables import (
        generate_latex_counterfactual_table,
        save_counterfactual_csv,
    )

    params = load_model_params(args.params)
    grid_config = load_grid_config(args.grid_config, args.section)
    sim_config = load_config_section(args.estimation_config, "simulation", SimulationConfig)
    moment_config = load_config_section(args.estimation_config, "moments", MomentConfig)
    cf_config = load_config_section(
        args.estimation_config, "counterfactuals", CounterfactualConfig
    )

    baseline = BaselineRun.build(params, grid_config, sim_config, moment_config)
    engine = CounterfactualEngine(baseline, cf_config)
    results = engine.run_all()

    os.makedirs(args.output_dir, exist_ok=True)
    save_counterfactual_csv(results, os.path.join(args.output_dir, "counterfactuals.csv"))
    for result in results:
        path = os.path.join(args.output_dir, f"cf_{result.name}.tex")
        with open(path, "w") as f:
            f.write(generate_latex_counterfactual_table(result))

    bounds = {}
    for sector in params.sector_names:
        try:
            la = compute_loss_aversion(
                baseline.moments, sector, cf_config.loss_aversion_etas,
                cf_config.loss_aversion_form,
            )
        except MissingMomentError as e:
            logger.warning("No loss-aversion bound for %s: %s", sector, e)
            continue
        bounds[sector] = {
            "response_ratio": la.response_ratio,
            "form": la.form,
            "lambda": {str(eta): lam for eta, lam in la.lambdas.items()},
        }
    save_json_file(bounds, os.path.join(args.output_dir, "loss_aversion.json"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run counterfactual experiments")
    parser.add_argument('--params', type=str, required=True,
                        help="JSON file with baseline (estimated) parameters.")
    parser.add_argument('--grid-config', type=str, default="config/grids.json")
    parser.add_argument('--section', type=str, default="baseline")
    parser.add_argument('--estimation-config', type=str, default="config/estimation.json")
    parser.add_argument('--output-dir', type=str, default="results/counterfactuals")
    return parser


def main(argv=None):
    """Main entry point for the counterfactual CLI."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)

    try:
        run_counterfactuals(args)
    except Exception as e:
        logger.error(f"Counterfactuals failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
