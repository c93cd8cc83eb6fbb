"""Flatpak alias manager -- keeps shell aliases in sync with installed Flatpaks."""

__version__ = "1.4.0"
