"""Command-line interface for cubetimer."""
