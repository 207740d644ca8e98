"""
Reconciliation Module

Idempotent tagging and untagging of catalog items from shelf membership.
"""

from shelftag.reconcile.reconciler import (
    Reconciler,
    ReconciliationEntry,
    ReconciliationReport,
    decide,
)

__all__ = [
    "Reconciler",
    "ReconciliationEntry",
    "ReconciliationReport",
    "decide",
]
