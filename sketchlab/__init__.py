"""Top level package for the sketchlab photo transform pipeline."""

from __future__ import annotations

from importlib import metadata as _importlib_metadata


def _resolve_distribution_version() -> str:
    """Best-effort retrieval of the installed package version."""

    try:
        return _importlib_metadata.version("sketchlab")
    except _importlib_metadata.PackageNotFoundError:  # pragma: no cover - metadata lookup
        return "0.0.0"


__version__ = _resolve_distribution_version()


def get_version() -> str:
    """Return the discovered package version."""

    return __version__


__all__ = ["__version__", "get_version"]
