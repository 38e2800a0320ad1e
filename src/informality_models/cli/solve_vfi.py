# informality_models/cli/solve_vfi.py
"""
Command-line interface for solving the lifecycle model at fixed parameters.

Solves by backward induction, saves the value and policy arrays, and
optionally simulates a cohort and writes its moments.

Example:
    $ python -m informality_models.cli.solve_vfi --params config/params.json
    $ python -m informality_models.cli.solve_vfi --params config/params.json \
          --grid-config config/grids.json --section baseline --simulate
"""

import argparse
import logging
import os
import sys
from typing import Optional

from informality_models.config.economic_params import load_model_params
from informality_models.config.estimation_config import (
    MomentConfig,
    SimulationConfig,
    load_config_section,
)
from informality_models.config.vfi_config import load_grid_config
from informality_models.io.artifacts import save_solution
from informality_models.io.file_utils import save_json_file

logger = logging.getLogger(__name__)


def solve_model(args) -> None:
    """Orchestrate one solve (and optional simulation)."""
    from informality_models.econ.income import IncomeProcess
    from informality_models.moment_calculator.panel_moments import compute_panel_moments
    from informality_models.vfi.lifecycle import LifecycleVFI
    from informality_models.vfi.simulation.lifecycle_simulator import LifecycleSimulator

    params = load_model_params(args.params)
    config = load_grid_config(args.grid_config, args.section)
    logger.info(
        "Solving with n_assets=%d, n_productivity=%d, T=%d",
        config.n_assets, config.n_productivity, config.n_periods,
    )

    solver = LifecycleVFI(params, config)
    solution = solver.solve()
    solution_path = os.path.join(args.output_dir, "lifecycle_solution.npz")
    save_solution(solution, solution_path)

    if args.simulate:
        sim_config = load_config_section(args.estimation_config, "simulation", SimulationConfig)
        moment_config = load_config_section(args.estimation_config, "moments", MomentConfig)
        income = IncomeProcess(params, solution.grid.productivity)
        simulator = LifecycleSimulator(sim_config, config.consumption_floor)
        panel = simulator.run(solution, income)
        moments = compute_panel_moments(panel, params.borrowing_limits, moment_config)
        if moments.missing:
            logger.warning("Undefined simulated moments: %s", ", ".join(moments.missing))
        save_json_file(
            {
                "moments": moments.to_dict(),
                "n_obs": moments.n_obs,
                "floor_binding_share": float(panel.floor_binding.mean()),
            },
            os.path.join(args.output_dir, "simulated_moments.json"),
        )


def configure_gpu(gpu_id: Optional[int]) -> None:
    """Pin this process to a single GPU via CUDA_VISIBLE_DEVICES."""
    if gpu_id is not None:
        os.environ['CUDA_VISIBLE_DEVICES'] = str(gpu_id)
        logger.info(f"GPU pinned to device {gpu_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Solve the lifecycle sector-choice model")
    parser.add_argument('--params', type=str, required=True,
                        help="JSON file with structural parameters.")
    parser.add_argument('--grid-config', type=str, default="config/grids.json",
                        help="JSON file with grid sections.")
    parser.add_argument('--section', type=str, default="baseline",
                        help="Section of the grid config to use.")
    parser.add_argument('--estimation-config', type=str, default="config/estimation.json",
                        help="JSON file with simulation and moment sections.")
    parser.add_argument('--output-dir', type=str, default="results",
                        help="Directory for the solution and moments.")
    parser.add_argument('--simulate', action='store_true',
                        help="Also simulate a cohort and save its moments.")
    parser.add_argument('--gpu', type=int, default=None,
                        help="GPU device ID to use. If not set, uses all GPUs.")
    return parser


def main(argv=None):
    """Main entry point for the solver CLI."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    args = build_parser().parse_args(argv)
    configure_gpu(args.gpu)

    try:
        solve_model(args)
    except Exception as e:
        logger.error(f"Solver failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
