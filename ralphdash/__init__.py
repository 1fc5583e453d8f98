"""ralphdash - terminal dashboard for the ralph task loop."""

__version__ = "0.1.0"
