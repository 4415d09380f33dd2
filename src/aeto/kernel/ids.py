"""
Identity and content hashing

Resource ids, commit ids and change-detection sums are all derived
deterministically so a retried reconcile pass produces the same values.

Fun fact: SHA-256 has 2^256 possible outputs - more than the estimated
number of atoms in the observable universe. Collisions are not our problem.
"""

import hashlib
import json
from typing import Any

from pydantic import BaseModel


def sha256_sum(data: bytes) -> str:
    """Return the hex encoded SHA-256 digest of data"""
    return hashlib.sha256(data).hexdigest()


def canonical_json(obj: Any) -> bytes:
    """
    Encode an object as canonical JSON (sorted keys, no whitespace)

    Pydantic models are dumped by alias first so the encoding matches
    what is written to the event store.
    """
    if isinstance(obj, BaseModel):
        obj = obj.model_dump(mode="json", by_alias=True)
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def as_sha256(obj: Any) -> str:
    """Return the SHA-256 digest of the canonical JSON form of obj"""
    return sha256_sum(canonical_json(obj))


def commit_id(aggregate_id: str, version: int) -> str:
    """
    Derive the id of the commit that advances an aggregate to version

    Same inputs always yield the same id, which makes the write path
    idempotent across retried passes.
    """
    return f"{aggregate_id}-stream-chunk-{version:06d}"


def stream_id(key: str) -> str:
    """Convert a namespaced key (namespace/name) into a stream id"""
    return key.replace("/", "-")
