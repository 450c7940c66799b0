"""trend-digest: Trending-source aggregation and bounded agentic newsletter generation."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("trend-digest")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
