"""Entry points that drive scans and delivery."""

from .batch import run_weekday_scan
from .delivery import acknowledge_delivery, next_encouragement
from .scan_runner import ScanOrchestrator

__all__ = [
    "ScanOrchestrator",
    "acknowledge_delivery",
    "next_encouragement",
    "run_weekday_scan",
]
