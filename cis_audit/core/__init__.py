"""Core modules for the CIS benchmark auditor."""

from .aggregator import ResultAggregator
from .auditor import AuditReport, Auditor
from .check import BaseCheck, CheckSpec, Finding, Outcome, ResultRecord, ScoringClass, Section
from .config import AuditSettings, RunRequest, load_settings
from .filter import IdentifierFilter
from .host import HostProbe
from .parallel_executor import ExecutionResult, ParallelExecutor
from .progress import ProgressTracker, RunPhase
from .registry import CheckRegistry
from .scorer import Scorer, Summary

__all__ = [
    "ResultAggregator",
    "AuditReport",
    "Auditor",
    "BaseCheck",
    "CheckSpec",
    "Finding",
    "Outcome",
    "ResultRecord",
    "ScoringClass",
    "Section",
    "AuditSettings",
    "RunRequest",
    "load_settings",
    "IdentifierFilter",
    "HostProbe",
    "ExecutionResult",
    "ParallelExecutor",
    "ProgressTracker",
    "RunPhase",
    "CheckRegistry",
    "Scorer",
    "Summary",
]
