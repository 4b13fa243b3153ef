from __future__ import annotations

import copy
import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class StorageError(RuntimeError):
    pass


_MISSING = object()


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


class JsonStorage:
    """
    Persistence port for the JSON document store.

    Paths are slash-separated keys relative to the store root
    (e.g. "data/logs/Risks.json").
    """

    def ensure_folder(self, path: str) -> str:
        raise NotImplementedError

    def read_json(self, path: str, default: Any = _MISSING) -> Any:
        raise NotImplementedError

    def write_json(self, path: str, value: Any) -> bool:
        raise NotImplementedError

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    @staticmethod
    def _default(default: Any) -> Any:
        # Absent files read as an empty list unless the caller says otherwise.
        return [] if default is _MISSING else copy.deepcopy(default)


@dataclass(frozen=True)
class LocalJsonStorage(JsonStorage):
    root: Path

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        return self.root / safe_key

    def ensure_folder(self, path: str) -> str:
        p = self._path(path)
        try:
            p.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create folder {path!r}: {e}") from e
        return str(p)

    def read_json(self, path: str, default: Any = _MISSING) -> Any:
        p = self._path(path)
        if not p.exists():
            return self._default(default)
        try:
            return json.loads(p.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageError(f"Malformed JSON in {path!r}: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot read {path!r}: {e}") from e

    def write_json(self, path: str, value: Any) -> bool:
        p = self._path(path)
        try:
            data = _dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {path!r} is not JSON serialisable: {e}") from e
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=p.parent, prefix=f".{p.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(data)
                os.replace(tmp, p)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise StorageError(f"Cannot write {path!r}: {e}") from e
        return True

    def exists(self, path: str) -> bool:
        return self._path(path).exists()


@dataclass(frozen=True)
class S3JsonStorage(JsonStorage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        try:
            import boto3  # type: ignore
        except Exception as e:  # pragma: no cover
            raise StorageError("boto3 required for S3 storage. Install boto3.") from e
        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def ensure_folder(self, path: str) -> str:
        # Object stores have no directories; prefixes come into existence on write.
        return f"s3://{self.bucket}/{path.strip('/')}"

    def read_json(self, path: str, default: Any = _MISSING) -> Any:
        client = self._client()
        try:
            obj = client.get_object(Bucket=self.bucket, Key=path)
        except client.exceptions.NoSuchKey:
            return self._default(default)
        except Exception as e:
            raise StorageError(f"Cannot read s3 key {path!r}: {e}") from e
        try:
            return json.loads(obj["Body"].read().decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageError(f"Malformed JSON in s3 key {path!r}: {e}") from e

    def write_json(self, path: str, value: Any) -> bool:
        try:
            body = _dumps(value).encode("utf-8")
            self._client().put_object(Bucket=self.bucket, Key=path, Body=body, ContentType="application/json")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cannot write s3 key {path!r}: {e}") from e
        return True

    def exists(self, path: str) -> bool:
        try:
            self._client().head_object(Bucket=self.bucket, Key=path)
            return True
        except Exception:
            return False


@dataclass
class MemoryJsonStorage(JsonStorage):
    """
    In-process store. Values round-trip through the JSON encoder so callers
    never share mutable state with the store.
    """

    files: dict[str, str] = field(default_factory=dict)
    folders: set[str] = field(default_factory=set)
    writes: int = 0
    fail_writes: bool = False

    def ensure_folder(self, path: str) -> str:
        self.folders.add(path.strip("/"))
        return path

    def read_json(self, path: str, default: Any = _MISSING) -> Any:
        raw = self.files.get(path)
        if raw is None:
            return self._default(default)
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageError(f"Malformed JSON in {path!r}: {e}") from e

    def write_json(self, path: str, value: Any) -> bool:
        if self.fail_writes:
            raise StorageError(f"Cannot write {path!r}: store is read-only")
        try:
            self.files[path] = _dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {path!r} is not JSON serialisable: {e}") from e
        self.writes += 1
        return True

    def exists(self, path: str) -> bool:
        return path in self.files


def storage_from_config(config: dict) -> JsonStorage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3JsonStorage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "nyc3").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    if backend == "memory":
        return MemoryJsonStorage()
    # default local
    root = Path(config.get("PM2_DATA_ROOT") or os.getcwd())
    return LocalJsonStorage(root=root)
