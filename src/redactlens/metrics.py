"""Prometheus counters shared by the API and the UI.

Kept apart from ``redactlens.api`` so reloading the app does not register the
same collectors twice.
"""

from prometheus_client import Counter

REQUESTS = Counter("redactlens_requests_total", "API requests", ["route"])
DECISIONS = Counter(
    "redactlens_decisions_total", "Finalized redaction decisions", ["source"]
)

__all__ = ["REQUESTS", "DECISIONS"]
