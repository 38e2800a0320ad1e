"""Structural lifecycle model of formal/informal sector choice under borrowing limits."""

__version__ = "0.1.0"
