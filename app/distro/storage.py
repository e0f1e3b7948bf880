from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from itsdangerous import BadSignature, URLSafeSerializer


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

    def presigned_upload_url(self, key: str, *, content_type: str | None = None, expires_in: int = 3600) -> str:
        """URL the client PUTs the object bytes to directly."""
        raise NotImplementedError

    def presigned_download_url(self, key: str, *, expires_in: int = 3600) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    """
    Filesystem backend for development and tests.

    Presigned URLs point back at this app (``/storage/<token>``); the token is a
    signed ``{key, op, exp}`` payload checked by :meth:`resolve_token`.
    """

    root: Path
    secret_key: str = "change-me"
    url_prefix: str = "/storage"

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        if ".." in safe_key.split("/"):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.root / safe_key

    def _serializer(self) -> URLSafeSerializer:
        return URLSafeSerializer(self.secret_key, salt="distro.local-storage")

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def open(self, key: str) -> BinaryIO:
        p = self._path(key)
        if not p.exists():
            raise StorageError(f"Object not found: {key}")
        return p.open("rb")

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def delete(self, key: str) -> None:
        p = self._path(key)
        if p.exists():
            p.unlink()

    def _sign(self, key: str, op: str, expires_in: int) -> str:
        token = self._serializer().dumps({"k": key, "op": op, "exp": int(time.time()) + int(expires_in)})
        return f"{self.url_prefix.rstrip('/')}/{token}"

    def presigned_upload_url(self, key: str, *, content_type: str | None = None, expires_in: int = 3600) -> str:
        return self._sign(key, "put", expires_in)

    def presigned_download_url(self, key: str, *, expires_in: int = 3600) -> str:
        return self._sign(key, "get", expires_in)

    def resolve_token(self, token: str, *, op: str) -> str:
        try:
            payload = self._serializer().loads(token)
        except BadSignature as e:
            raise StorageError("Invalid storage token") from e
        if not isinstance(payload, dict) or payload.get("op") != op:
            raise StorageError("Storage token not valid for this operation")
        if int(payload.get("exp") or 0) < int(time.time()):
            raise StorageError("Storage token expired")
        return str(payload["k"])


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
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
        try:
            self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 put failed for {key}: {e}") from e

    def open(self, key: str) -> BinaryIO:
        try:
            obj = self._client().get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise StorageError(f"Object not found: {key}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 unavailable: {e}") from e
        return obj["Body"]  # type: ignore[return-value]

    def exists(self, key: str) -> bool:
        """False for a missing object; StorageError when S3 cannot answer."""
        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(f"S3 head failed for {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 unavailable: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client().delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 delete failed for {key}: {e}") from e

    def _presign(self, method: str, params: dict[str, object], expires_in: int) -> str:
        try:
            return self._client().generate_presigned_url(method, Params=params, ExpiresIn=expires_in)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not sign S3 URL: {e}") from e

    def presigned_upload_url(self, key: str, *, content_type: str | None = None, expires_in: int = 3600) -> str:
        params: dict[str, object] = {"Bucket": self.bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        return self._presign("put_object", params, expires_in)

    def presigned_download_url(self, key: str, *, expires_in: int = 3600) -> str:
        return self._presign("get_object", {"Bucket": self.bucket, "Key": key}, expires_in)


def storage_from_config(config: dict) -> Storage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "us-east-1").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    # default local
    root_cfg = (config.get("LOCAL_STORAGE_ROOT") or "").strip()
    root = Path(root_cfg) if root_cfg else Path(os.getcwd()) / "storage"
    return LocalStorage(root=root, secret_key=str(config.get("SECRET_KEY") or "change-me"))
