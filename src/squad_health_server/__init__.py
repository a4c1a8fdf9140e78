"""Team health management backend for players, coaches and doctors."""

__version__ = "0.1.0"
