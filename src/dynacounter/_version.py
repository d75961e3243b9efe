"""Installed dynacounter version."""

from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Version from package metadata, or a placeholder for source checkouts."""
    try:
        return version("dynacounter")
    except PackageNotFoundError:
        return "0.0.0-unknown"


__version__ = get_version()
