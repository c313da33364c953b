from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path

from staffhub.errors import ApiError
from staffhub.models import DocumentType
from staffhub.settings import get_public_base_url, get_settings, get_storage_root

logger = logging.getLogger("staffhub.storage")

PUBLIC_PREFIX = "/storage/v1/object/public"
_EXTENSION_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class StoredObject:
    bucket: str
    path: str
    public_url: str
    size: int


def file_extension(filename: str | None) -> str:
    """Text after the last dot of the filename, or the whole name when it has none."""
    raw = (filename or "").rsplit(".", 1)[-1].strip().lower()
    cleaned = _EXTENSION_RE.sub("", raw)
    return cleaned or "bin"


def document_path(user_id: uuid.UUID, document_type: DocumentType | str, filename: str | None) -> str:
    type_value = DocumentType(document_type).value
    return f"documents/{user_id}/{type_value}.{file_extension(filename)}"


class DocumentStore:
    def __init__(self, root: Path, bucket: str, public_base_url: str):
        self.root = root
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def bucket_root(self) -> Path:
        return self.root / self.bucket

    def _resolve(self, object_path: str) -> Path:
        bucket_root = self.bucket_root.resolve()
        target = (bucket_root / object_path).resolve()
        if bucket_root not in target.parents:
            raise ApiError(status_code=400, code="INVALID_OBJECT_PATH", message="Invalid object path.")
        return target

    def public_url(self, object_path: str) -> str:
        return f"{self.public_base_url}{PUBLIC_PREFIX}/{self.bucket}/{object_path}"

    def upload(self, object_path: str, content: bytes, *, upsert: bool = True) -> StoredObject:
        target = self._resolve(object_path)
        if target.exists() and not upsert:
            raise ApiError(status_code=409, code="OBJECT_EXISTS", message="Object already exists.")

        # Only one object per document type: drop siblings stored under another extension.
        for sibling in target.parent.glob(f"{target.stem}.*") if target.parent.exists() else []:
            if sibling != target:
                sibling.unlink(missing_ok=True)

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info(
            "storage_object_written",
            extra={"bucket": self.bucket, "path": object_path, "size": len(content)},
        )
        return StoredObject(
            bucket=self.bucket,
            path=object_path,
            public_url=self.public_url(object_path),
            size=len(content),
        )

    def read(self, object_path: str) -> bytes:
        target = self._resolve(object_path)
        if not target.is_file():
            raise ApiError(status_code=404, code="OBJECT_NOT_FOUND", message="Object not found.")
        return target.read_bytes()


def get_document_store() -> DocumentStore:
    settings = get_settings()
    return DocumentStore(
        root=get_storage_root(),
        bucket=settings.storage_bucket,
        public_base_url=get_public_base_url(),
    )
