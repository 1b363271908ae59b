"""MesmerDrift: timed ambient-effect sessions."""

__version__ = "0.1.0"
