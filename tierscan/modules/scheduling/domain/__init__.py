"""
Tiered Scan Scheduling - Package Entry Point

Exports the scan orchestrator, calendar gate and the tier/mode vocabulary.
"""

from .calendar_gate import CalendarGate, SkipDecision
from .orchestrator import TieredScanOrchestrator, TriggerRule
from .state import ChainEntry, JobHandle, SchedulerState
from .tiers import Mode, Tier

__all__ = [
    "TieredScanOrchestrator",
    "TriggerRule",
    "CalendarGate",
    "SkipDecision",
    "SchedulerState",
    "JobHandle",
    "ChainEntry",
    "Tier",
    "Mode",
]
