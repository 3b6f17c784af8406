"""Alert ingestion."""

from .dedup import DedupAction, DedupDecision, Deduplicator
from .extractors import RuleUidExtractor, ensure_fingerprint, external_alert_id
from .ingestor import AlertIngestor

__all__ = [
    "AlertIngestor",
    "DedupAction",
    "DedupDecision",
    "Deduplicator",
    "RuleUidExtractor",
    "ensure_fingerprint",
    "external_alert_id",
]
