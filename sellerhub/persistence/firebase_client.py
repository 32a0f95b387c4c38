"""
Firebase Admin bootstrap for the orders engine.

Firestore holds live buyer and seller order data, so non-production
environments must point at the emulator before any client is created.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Optional

import firebase_admin
import google.auth
from firebase_admin import credentials, firestore

from sellerhub.common.logging import log_event

logger = logging.getLogger(__name__)

_CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

# Environments that must never reach production Firestore by accident.
EMULATOR_ONLY_ENVS = frozenset({"local", "dev", "test"})

_init_lock = threading.Lock()


def ensure_safe_firestore_target(env: str) -> None:
    """
    Refuse to start an orders service in a non-production env without the emulator.

    ALLOW_PROD_FIRESTORE=1 overrides the check (e.g. a one-off backfill run
    from a workstation).
    """
    if env.strip().lower() not in EMULATOR_ONLY_ENVS:
        return
    if (os.getenv("FIRESTORE_EMULATOR_HOST") or "").strip():
        return
    if (os.getenv("ALLOW_PROD_FIRESTORE") or "").strip() == "1":
        log_event(logger, "orders.firestore.prod_override", severity="WARNING", env=env)
        return
    raise RuntimeError(
        f"ENV={env!r} would read and mutate production orders. "
        "Set FIRESTORE_EMULATOR_HOST (e.g. 127.0.0.1:8080) or ALLOW_PROD_FIRESTORE=1."
    )


def _project_id(explicit: Optional[str]) -> str:
    if explicit:
        return explicit
    try:
        _, project_id = google.auth.default(scopes=[_CLOUD_PLATFORM_SCOPE])
    except Exception:
        project_id = None
    if not project_id:
        raise RuntimeError("Firebase project id could not be resolved; set FIREBASE_PROJECT_ID.")
    return project_id


def init_firebase_admin(
    *,
    env: str,
    project_id: Optional[str] = None,
    storage_bucket: Optional[str] = None,
) -> None:
    """
    Initialize the default Firebase app once per process.

    Uses Application Default Credentials. `storage_bucket` is required for
    `gs://` product image resolution.
    """
    ensure_safe_firestore_target(env)
    with _init_lock:
        if firebase_admin._apps:
            return
        try:
            cred = credentials.ApplicationDefault()
        except Exception as e:
            raise RuntimeError(
                "Application Default Credentials unavailable; run `gcloud auth application-default login`."
            ) from e

        options: dict[str, str] = {"projectId": _project_id(project_id)}
        if storage_bucket:
            options["storageBucket"] = storage_bucket
        firebase_admin.initialize_app(cred, options)
        log_event(logger, "orders.firebase.initialized", env=env, **options)


def get_firestore_client(
    *,
    env: str,
    project_id: Optional[str] = None,
    storage_bucket: Optional[str] = None,
):
    init_firebase_admin(env=env, project_id=project_id, storage_bucket=storage_bucket)
    return firestore.client()
