# informality_models/io/tables.py
"""
Tabular exports for the tables stage: parameter estimates, moment fit and
counterfactual welfare comparisons, as CSV and as LaTeX fragments.
"""

import csv
import logging
import os
from typing import List, Sequence

import numpy as np

from informality_models.counterfactual.engine import CounterfactualResult
from informality_models.estimation.smm import ParameterRow
from informality_models.moment_calculator.panel_moments import MomentVector
from informality_models.moment_calculator.targets import TargetMoments

logger = logging.getLogger(__name__)


def _ensure_dir(output_path: str) -> None:
    os.makedirs(
        os.path.dirname(output_path) if os.path.dirname(output_path) else ".",
        exist_ok=True,
    )


# =========================================================================
#  CSV
# =========================================================================

def save_parameter_table_csv(rows: Sequence[ParameterRow], output_path: str) -> None:
    """Save the parameter table (estimated and calibrated) to CSV."""
    _ensure_dir(output_path)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=["name", "symbol", "value", "std_error", "source"])
        writer.writeheader()
        for r in rows:
            writer.writerow({
                "name": r.name,
                "symbol": r.symbol,
                "value": r.value,
                "std_error": "" if np.isnan(r.std_error) else r.std_error,
                "source": r.source,
            })
    logger.info("Parameter table saved: %s", output_path)


def save_moment_fit_csv(
    targets: TargetMoments,
    model_moments: MomentVector,
    output_path: str,
) -> None:
    """Save data vs model moments side by side."""
    _ensure_dir(output_path)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=["moment", "data", "std_error", "model"])
        writer.writeheader()
        for target in targets.targets:
            writer.writerow({
                "moment": target.name,
                "data": target.value,
                "std_error": "" if target.std_error is None else target.std_error,
                "model": model_moments.values.get(target.name, float("nan")),
            })
    logger.info("Moment fit table saved: %s", output_path)


def counterfactual_records(result: CounterfactualResult) -> List[dict]:
    """Flatten one experiment into rows: one per (sector, gamma)."""
    records = []
    for row in result.rows:
        for gamma in row.baseline_welfare_cost:
            records.append({
                "experiment": result.name,
                "sector": row.sector,
                "gamma": gamma,
                "baseline_var": row.baseline_variance,
                "counterfactual_var": row.counterfactual_variance,
                "reduction_pct": row.reduction_pct,
                "baseline_welfare_cost": row.baseline_welfare_cost[gamma],
                "counterfactual_welfare_cost": row.counterfactual_welfare_cost[gamma],
            })
    return records


def save_counterfactual_csv(
    results: Sequence[CounterfactualResult],
    output_path: str,
) -> None:
    """Save every experiment's welfare comparison to one CSV."""
    _ensure_dir(output_path)
    fieldnames = [
        "experiment", "sector", "gamma",
        "baseline_var", "counterfactual_var", "reduction_pct",
        "baseline_welfare_cost", "counterfactual_welfare_cost",
    ]
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for result in results:
            for record in counterfactual_records(result):
                writer.writerow(record)
    logger.info("Counterfactual CSV saved: %s", output_path)


# =========================================================================
#  LaTeX
# =========================================================================

def generate_latex_parameter_table(rows: Sequence[ParameterRow]) -> str:
    r"""Generate a LaTeX table of parameter values and bootstrap SEs."""
    lines = [
        r"\begin{table}[htbp]",
        r"\centering",
        r"\caption{Structural Parameters}",
        r"\label{tab:structural_parameters}",
        r"\begin{tabular}{llcc}",
        r"\toprule",
        r"Parameter & Source & Value & SE \\",
        r"\midrule",
    ]
    for r in rows:
        se = "--" if np.isnan(r.std_error) else f"({r.std_error:.4f})"
        lines.append(f"{r.symbol} & {r.source} & {r.value:.4f} & {se} \\\\")
    lines += [
        r"\bottomrule",
        r"\end{tabular}",
        r"\end{table}",
    ]
    return "\n".join(lines)


def generate_latex_counterfactual_table(result: CounterfactualResult) -> str:
    r"""Generate a LaTeX table for one counterfactual experiment."""
    gammas = list(result.rows[0].baseline_welfare_cost) if result.rows else []
    n_cols = 4 + len(gammas)
    title = result.name.replace("_", " ").capitalize()
    lines = [
        r"\begin{table}[htbp]",
        r"\centering",
        f"\\caption{{Counterfactual: {title}}}",
        f"\\label{{tab:cf_{result.name}}}",
        r"\begin{tabular}{l" + "c" * (n_cols - 1) + "}",
        r"\toprule",
        "Sector & Var base & Var CF & Reduction (\\%) & "
        + " & ".join(f"$W(\\gamma={g:g})$" for g in gammas) + r" \\",
        r"\midrule",
    ]
    for row in result.rows:
        costs = " & ".join(
            f"{100 * row.baseline_welfare_cost[g]:.2f}\\% $\\to$ "
            f"{100 * row.counterfactual_welfare_cost[g]:.2f}\\%"
            for g in gammas
        )
        lines.append(
            f"{row.sector} & {row.baseline_variance:.4f} & "
            f"{row.counterfactual_variance:.4f} & {row.reduction_pct:+.1f} & {costs} \\\\"
        )
    lines += [
        r"\bottomrule",
        r"\end{tabular}",
        r"\end{table}",
    ]
    return "\n".join(lines)
