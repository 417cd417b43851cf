"""Schedule task extraction and progress tracking package."""
from __future__ import annotations

from . import noise, normalize, parser, pipeline, renderer, report, sources, store

__all__ = [
    "noise",
    "parser",
    "normalize",
    "pipeline",
    "sources",
    "store",
    "report",
    "renderer",
]
