"""
Persistence adapters (server-side).

These modules are intended for backend-only usage (Firebase Admin SDK / server credentials).
"""

from __future__ import annotations

from .order_store import FirestoreOrderStore, InMemoryOrderStore, OrderStore, StoredDocument

__all__ = ["FirestoreOrderStore", "InMemoryOrderStore", "OrderStore", "StoredDocument"]
