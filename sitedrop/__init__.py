"""sitedrop - static site host with a one-shot deploy key and zip deployments."""

__version__ = "1.0.0"
