from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import BinaryIO, TYPE_CHECKING

from werkzeug.utils import secure_filename

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from werkzeug.datastructures import FileStorage
    from app.boaz.models import Attachment, User


class StorageError(RuntimeError):
    pass


class Storage:
    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        p = (self.root / safe_key).resolve()
        if self.root.resolve() not in p.parents:
            raise StorageError(f"Storage key escapes root: {key}")
        return p

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def open(self, key: str) -> BinaryIO:
        p = self._path(key)
        return p.open("rb")

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def delete(self, key: str) -> None:
        p = self._path(key)
        if p.exists():
            p.unlink()


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        extra: dict[str, object] = {}
        if content_type:
            extra["ContentType"] = content_type
        self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **extra)

    def open(self, key: str) -> BinaryIO:
        obj = self._client().get_object(Bucket=self.bucket, Key=key)
        return obj["Body"]  # type: ignore[return-value]

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError:
            return False

    def delete(self, key: str) -> None:
        self._client().delete_object(Bucket=self.bucket, Key=key)


def storage_from_config(config: dict) -> Storage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "nyc3").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    # default local
    root_cfg = (config.get("STORAGE_ROOT") or "").strip()
    root = Path(root_cfg) if root_cfg else Path(os.getcwd()) / "storage"
    return LocalStorage(root=root)


def build_storage_key(entity_type: str, entity_id: int, filename: str, upload_date: date | None = None) -> str:
    """Deterministic key: <entity>/<id>/<YYYY-MM-DD>/<secure filename>."""
    if upload_date is None:
        upload_date = date.today()
    safe_filename = secure_filename(filename) or "document.bin"
    return f"{entity_type}/{entity_id}/{upload_date.isoformat()}/{safe_filename}"


def file_digest_and_size(file_bytes: bytes) -> tuple[str, int]:
    h = hashlib.sha256()
    h.update(file_bytes)
    return (h.hexdigest(), len(file_bytes))


def store_upload(
    s: "Session",
    *,
    entity_type: str,
    entity_id: int,
    upload: "FileStorage",
    user: "User | None",
) -> "Attachment":
    """Write an uploaded file to the configured Storage and record an Attachment row."""
    from flask import current_app

    from app.boaz.audit import record_event
    from app.boaz.models import Attachment

    file_bytes = upload.read()
    filename = upload.filename or "document.bin"
    content_type = upload.mimetype or "application/octet-stream"
    sha256, size_bytes = file_digest_and_size(file_bytes)

    key = build_storage_key(entity_type, entity_id, filename)
    # Same-day uploads of the same filename get a digest prefix so keys stay unique.
    if s.query(Attachment).filter(Attachment.storage_key == key).first():
        key = build_storage_key(entity_type, entity_id, f"{sha256[:8]}-{filename}")

    storage = storage_from_config(current_app.config)
    storage.put_bytes(key, file_bytes, content_type=content_type)

    att = Attachment(
        entity_type=entity_type,
        entity_id=entity_id,
        storage_key=key,
        original_filename=secure_filename(filename) or "document.bin",
        content_type=content_type,
        sha256=sha256,
        size_bytes=size_bytes,
        uploaded_by_user_id=user.id if user else None,
    )
    s.add(att)
    s.flush()
    record_event(
        s,
        actor=user,
        action="attachment.upload",
        entity_type="Attachment",
        entity_id=str(att.id),
        metadata={"owner": entity_type, "owner_id": entity_id, "filename": att.original_filename},
    )
    return att


def list_attachments(s: "Session", entity_type: str, entity_id: int) -> list["Attachment"]:
    from app.boaz.models import Attachment

    return (
        s.query(Attachment)
        .filter(Attachment.entity_type == entity_type, Attachment.entity_id == entity_id)
        .order_by(Attachment.uploaded_at.desc())
        .all()
    )


def send_attachment(att: "Attachment"):
    from flask import current_app, send_file

    storage = storage_from_config(current_app.config)
    fh = storage.open(att.storage_key)
    return send_file(fh, mimetype=att.content_type, as_attachment=True, download_name=att.original_filename)
