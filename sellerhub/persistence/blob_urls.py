from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable

from firebase_admin import storage

GS_SCHEME = "gs://"

BlobUrlResolver = Callable[[str], Awaitable[str]]


def is_storage_path(path: str) -> bool:
    return str(path or "").startswith(GS_SCHEME)


def split_storage_path(path: str) -> tuple[str, str]:
    """
    "gs://bucket/products/a.png" -> ("bucket", "products/a.png")
    """
    s = str(path or "")
    if not s.startswith(GS_SCHEME):
        raise ValueError(f"not a storage path: {path!r}")
    bucket, _, blob = s[len(GS_SCHEME) :].partition("/")
    if not bucket or not blob:
        raise ValueError(f"storage path must name a bucket and an object: {path!r}")
    return bucket, blob


class FirebaseStorageUrlResolver:
    """
    Resolve `gs://` product image paths to time-limited download URLs.

    Signing is a blocking SDK call, so it runs in a worker thread. Errors
    propagate; callers treat a failure as "no image".
    """

    def __init__(self, *, ttl_s: int = 3600) -> None:
        self._ttl = timedelta(seconds=int(ttl_s))

    def _sign(self, path: str) -> str:
        bucket_name, blob_name = split_storage_path(path)
        blob = storage.bucket(bucket_name).blob(blob_name)
        return blob.generate_signed_url(expiration=self._ttl, version="v4")

    async def __call__(self, path: str) -> str:
        return await asyncio.to_thread(self._sign, path)
