"""Timing and statistics core."""
