"""panelops — operations notation resolution and library matching service."""

__version__ = "1.0.0"
