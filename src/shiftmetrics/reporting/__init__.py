"""Request-level reporting queries."""

from .service import PeerComparison, ShiftMetricsService, SubjectSummary

__all__ = ["ShiftMetricsService", "SubjectSummary", "PeerComparison"]
