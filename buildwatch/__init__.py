"""Building blocks for watching GitHub Actions builds: runs, events, status, history and config."""

__version__ = "0.5.0"