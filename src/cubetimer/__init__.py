"""cubetimer: hold-to-start speedcube timer and WCA-style statistics."""

__version__ = "0.1.0"
