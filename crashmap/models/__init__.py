"""Domain models for crash map queries."""

from .results import (CrashPoint, MapCluster, SummaryBucket, SummaryResult,
                      SummaryTotals)
from .severity import (SEVERITY_LABELS, UNKNOWN_LABEL, Severity,
                       canonical_severity_label, severity_rank)

__all__ = [
    "CrashPoint",
    "MapCluster",
    "SummaryBucket",
    "SummaryResult",
    "SummaryTotals",
    "Severity",
    "SEVERITY_LABELS",
    "UNKNOWN_LABEL",
    "canonical_severity_label",
    "severity_rank",
]
