"""Storage key generation for uploaded files."""
import time
from pathlib import PurePosixPath


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def build_storage_key(filename: str) -> str:
    """Return ``<epoch millis>_<filename>``.

    Only the last path component of the client-supplied name is used.
    Two uploads of the same name within one millisecond get the same key;
    the store's no-overwrite check rejects the second.
    """
    basename = PurePosixPath(filename.replace("\\", "/")).name or "unnamed"
    return f"{_now_ms()}_{basename}"
