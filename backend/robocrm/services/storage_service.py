# Overview: Bucket-scoped blob storage on the local filesystem (contract/offer PDFs, images).

from __future__ import annotations

import logging
import os
import re

from flask import current_app


logger = logging.getLogger(__name__)

BUCKET_CONTRACT_PDFS = "contract-pdfs"
BUCKET_OFFER_PDFS = "offer-pdfs"
BUCKETS = (BUCKET_CONTRACT_PDFS, BUCKET_OFFER_PDFS, "robot-images", "company-assets")

_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9._-]+$")


class StorageError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class BucketStorage:
    """
    (bucket, path) addressed storage rooted at a directory. Paths are
    slash-separated relative names; traversal outside the bucket is refused.
    """

    def __init__(self, root: str, public_base_url: str = "/files"):
        self.root = os.path.abspath(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> str:
        if bucket not in BUCKETS:
            raise StorageError(f"Unknown bucket: {bucket}", {"bucket": bucket})
        parts = [p for p in (path or "").split("/") if p]
        if not parts or any(p in {".", ".."} or not _SAFE_SEGMENT.match(p) for p in parts):
            raise StorageError(f"Invalid object path: {path!r}", {"bucket": bucket})
        return os.path.join(self.root, bucket, *parts)

    def upload(self, bucket: str, path: str, data: bytes, *, overwrite: bool = False) -> str:
        target = self._resolve(bucket, path)
        if os.path.exists(target) and not overwrite:
            raise StorageError(f"Object already exists: {bucket}/{path}", {"bucket": bucket, "path": path})
        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, "wb") as fh:
                fh.write(data)
        except OSError as e:
            raise StorageError(f"Upload failed: {e}", {"bucket": bucket, "path": path}) from e
        logger.info("Stored %s/%s (%d bytes)", bucket, path, len(data))
        return path

    def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        if not os.path.isfile(target):
            raise StorageError(f"Object not found: {bucket}/{path}", {"bucket": bucket, "path": path})
        with open(target, "rb") as fh:
            return fh.read()

    def remove(self, bucket: str, path: str) -> bool:
        target = self._resolve(bucket, path)
        if not os.path.isfile(target):
            return False
        os.remove(target)
        return True

    def exists(self, bucket: str, path: str) -> bool:
        return os.path.isfile(self._resolve(bucket, path))

    def public_url(self, bucket: str, path: str) -> str:
        self._resolve(bucket, path)
        return f"{self.public_base_url}/{bucket}/{path.lstrip('/')}"


def get_storage() -> BucketStorage:
    cfg = current_app.config
    return BucketStorage(cfg["STORAGE_ROOT"], cfg.get("STORAGE_PUBLIC_BASE_URL", "/files"))
