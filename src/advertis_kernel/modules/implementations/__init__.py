from .audit_synthesis import AuditSynthesis
from .data_quality_scorer import DataQualityScorer

__all__ = ["AuditSynthesis", "DataQualityScorer"]
