"""Verse selection agent and the scan state graph."""

from .fallback import FALLBACK_OPTIONS, FallbackVerse, pick_fallback
from .graph import ScanDependencies, build_scan_graph
from .state import ScanState
from .verse_selector import parse_selection, select_verse

__all__ = [
    "FALLBACK_OPTIONS",
    "FallbackVerse",
    "ScanDependencies",
    "ScanState",
    "build_scan_graph",
    "parse_selection",
    "pick_fallback",
    "select_verse",
]
