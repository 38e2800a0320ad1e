"""Input/output helpers: JSON configuration, panels, solutions and tables."""
