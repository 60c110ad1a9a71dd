"""Read-only Bitbucket Cloud provider core."""

__version__ = "0.1.0"
