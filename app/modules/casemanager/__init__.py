"""Alert-to-case pipeline: ingestion, dedup, assignment, lifecycle and notification fan-out."""
