"""
Key and path generation for session snapshots.
Every snapshot is namespaced by a fixed prefix plus the case id.
"""

import hashlib
from pathlib import Path


def snapshot_key(prefix: str, case_id: str) -> str:
    """Store key for a case's session snapshot."""
    return f"{prefix}{case_id}"


def snapshot_file_name(key: str) -> str:
    """
    Filesystem-safe name for a snapshot key.
    Case ids are opaque, so the key is hashed rather than escaped.
    """
    return f"{hashlib.sha256(key.encode('utf-8')).hexdigest()}.json"


def ensure_parent_dirs(root: str, relative_path: str) -> Path:
    """Create parent directories and return the full absolute path."""
    full_path = Path(root) / relative_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    return full_path
