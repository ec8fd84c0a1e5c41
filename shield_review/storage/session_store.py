"""
Session durability for unsynced shield edits.

Keeps a case's session overrides across reloads and crashes without
contacting the resolver. Best effort: every backend failure is logged and
counted, never raised. This layer never decides when to sync upstream.

Backends:
- memory: process-local dict (tests, single-process dev)
- file:   one JSON file per case under SESSION_STORE_ROOT
- redis:  SETEX with SESSION_TTL_SECONDS, so abandoned sessions expire
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError
from redis import Redis

from shield_review.config import settings
from shield_review.models.enums import PendingAction
from shield_review.observability.metrics import session_store_errors_total
from shield_review.schemas.review import SessionSnapshot
from shield_review.schemas.shields import CleanupShield
from shield_review.storage.paths import ensure_parent_dirs, snapshot_file_name, snapshot_key

logger = structlog.get_logger(__name__)


class SnapshotBackend(ABC):
    """Minimal string key/value store the durability layer writes to."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def ping(self) -> bool:
        """Whether the backend is reachable."""
        return True


class MemorySnapshotBackend(SnapshotBackend):

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileSnapshotBackend(SnapshotBackend):
    """
    One JSON file per key, all under a single root directory.
    Writes go through a temp file and an atomic rename.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.SESSION_STORE_ROOT)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / snapshot_file_name(key)

    def get(self, key: str) -> Optional[str]:
        full_path = self._path(key)
        if not full_path.exists():
            return None
        return full_path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        full_path = ensure_parent_dirs(str(self.root), snapshot_file_name(key))
        tmp_path = full_path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(full_path)

    def delete(self, key: str) -> None:
        full_path = self._path(key)
        if full_path.exists():
            full_path.unlink()

    def ping(self) -> bool:
        return self.root.is_dir()


class RedisSnapshotBackend(SnapshotBackend):

    def __init__(self, conn: Redis, ttl_seconds: Optional[int] = None):
        self.conn = conn
        self.ttl_seconds = ttl_seconds or settings.SESSION_TTL_SECONDS

    @classmethod
    def from_url(cls, url: Optional[str] = None, ttl_seconds: Optional[int] = None) -> "RedisSnapshotBackend":
        return cls(Redis.from_url(url or settings.REDIS_URL), ttl_seconds=ttl_seconds)

    def get(self, key: str) -> Optional[str]:
        raw = self.conn.get(key)
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw

    def set(self, key: str, value: str) -> None:
        self.conn.setex(key, self.ttl_seconds, value)

    def delete(self, key: str) -> None:
        self.conn.delete(key)

    def ping(self) -> bool:
        try:
            return bool(self.conn.ping())
        except Exception as e:
            logger.warning("session_store_ping_failed", backend="redis", error=str(e))
            return False


class SessionOverrideStore:
    """
    Read/write a per-case snapshot of unsynced session overrides.
    Injected into the review state machine; one store may serve many cases.
    """

    def __init__(self, backend: SnapshotBackend, key_prefix: Optional[str] = None):
        self.backend = backend
        self.key_prefix = key_prefix if key_prefix is not None else settings.SESSION_KEY_PREFIX

    def key(self, case_id: str) -> str:
        return snapshot_key(self.key_prefix, case_id)

    def save(
        self,
        case_id: str,
        overrides: list[CleanupShield],
        pending_action: Optional[PendingAction] = None,
    ) -> None:
        """Persist the overrides. Fire-and-forget: failures are swallowed."""
        snapshot = SessionSnapshot(
            case_id=case_id,
            shields=overrides,
            last_modified=datetime.now(timezone.utc),
            pending_action=pending_action,
        )
        try:
            self.backend.set(self.key(case_id), snapshot.model_dump_json())
        except Exception as e:
            session_store_errors_total.labels(operation="save").inc()
            logger.warning(
                "session_snapshot_save_failed",
                case_id=case_id,
                override_count=len(overrides),
                error=str(e),
            )
            return
        logger.debug(
            "session_snapshot_saved",
            case_id=case_id,
            override_count=len(overrides),
            pending_action=pending_action.value if pending_action else None,
        )

    def load_snapshot(self, case_id: str) -> Optional[SessionSnapshot]:
        """
        Full snapshot for a case, or None if absent, unparsable, or written
        for a different case id.
        """
        try:
            raw = self.backend.get(self.key(case_id))
        except Exception as e:
            session_store_errors_total.labels(operation="load").inc()
            logger.warning("session_snapshot_load_failed", case_id=case_id, error=str(e))
            return None

        if raw is None:
            return None

        try:
            snapshot = SessionSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("session_snapshot_unparsable", case_id=case_id, error=str(e))
            return None

        if snapshot.case_id != case_id:
            logger.warning(
                "session_snapshot_case_mismatch",
                case_id=case_id,
                stored_case_id=snapshot.case_id,
            )
            return None

        return snapshot

    def load(self, case_id: str) -> Optional[list[CleanupShield]]:
        """Stored overrides for a case, or None."""
        snapshot = self.load_snapshot(case_id)
        if snapshot is None:
            return None
        return snapshot.shields

    def clear(self, case_id: str) -> None:
        """Remove the snapshot for a case. Failures are swallowed."""
        try:
            self.backend.delete(self.key(case_id))
        except Exception as e:
            session_store_errors_total.labels(operation="clear").inc()
            logger.warning("session_snapshot_clear_failed", case_id=case_id, error=str(e))

    def ping(self) -> bool:
        try:
            return self.backend.ping()
        except Exception as e:
            logger.warning("session_store_ping_failed", error=str(e))
            return False


def build_snapshot_backend(kind: Optional[str] = None) -> SnapshotBackend:
    """Backend selected by SESSION_STORE_BACKEND."""
    kind = (kind or settings.SESSION_STORE_BACKEND).lower()
    if kind == "memory":
        return MemorySnapshotBackend()
    if kind == "file":
        return FileSnapshotBackend()
    if kind == "redis":
        return RedisSnapshotBackend.from_url()
    raise ValueError(f"Unknown session store backend: {kind}")


def build_session_store() -> SessionOverrideStore:
    return SessionOverrideStore(build_snapshot_backend())
