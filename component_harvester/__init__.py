"""Harvest release metadata and artifacts for open-source components."""

__version__ = "0.1.0"
