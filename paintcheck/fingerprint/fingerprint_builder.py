import hashlib
import json
import time
from typing import Optional, Sequence

from paintcheck.shared.schemas import Command, ERROR_HASH_PREFIX

HASH_LENGTH = 16


def canonical_json(commands: Sequence[Command]) -> str:
    """Key-ordered, whitespace-free serialization of a command sequence."""
    return json.dumps(
        [command.model_dump() for command in commands],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def fingerprint(commands: Sequence[Command]) -> str:
    """SHA-256 of the canonical form, truncated to 16 hex characters."""
    digest = hashlib.sha256(canonical_json(commands).encode("utf-8")).hexdigest()
    return digest[:HASH_LENGTH]


def error_marker(now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{ERROR_HASH_PREFIX}{now_ms}"


def hashes_equal(baseline: Optional[str], actual: Optional[str]) -> bool:
    # An error marker never matches anything, not even an identical marker
    if not baseline or not actual:
        return False
    if baseline.startswith(ERROR_HASH_PREFIX) or actual.startswith(ERROR_HASH_PREFIX):
        return False
    return baseline == actual
