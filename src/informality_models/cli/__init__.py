"""Command-line entry points: solve, estimate and run counterfactuals."""
