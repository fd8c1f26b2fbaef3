"""
Implementation version history for an upgradeable proxy.

An upgrade replaces the proxy's code while its storage (and therefore
every binding) stays in place.  The proxy records one
``ImplementationRecord`` per upgrade in the ``upgrade`` storage
namespace; the records form an append-only audit trail.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .storage import StorageBackend

logger = logging.getLogger("lockproxy.upgrade")

NS_UPGRADE = "upgrade"


@dataclass
class ImplementationRecord:
    """Metadata about a single implementation version."""
    version: int
    code_hash: str
    name: str = ""
    version_label: str = ""
    author: str = ""
    email: str = ""
    description: str = ""
    deployer: str = ""
    timestamp: float = field(default_factory=time.time)

    @staticmethod
    def hash_code(script: bytes) -> str:
        return hashlib.sha256(script).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ImplementationRecord":
        return cls(**d)


class UpgradeHistory:
    """Append-only repository of ``ImplementationRecord`` entries."""

    def __init__(self, storage: StorageBackend):
        self._storage = storage

    @staticmethod
    def _key(version: int) -> bytes:
        return version.to_bytes(8, "big")

    def append(self, record: ImplementationRecord) -> None:
        if self._storage.has(NS_UPGRADE, self._key(record.version)):
            raise ValueError(f"Implementation version {record.version} already recorded")
        self._storage.put(
            NS_UPGRADE,
            self._key(record.version),
            json.dumps(record.to_dict(), sort_keys=True).encode("utf-8"),
        )

    def records(self) -> List[ImplementationRecord]:
        return [
            ImplementationRecord.from_dict(json.loads(value.decode("utf-8")))
            for _, value in self._storage.iterate(NS_UPGRADE)
        ]

    def latest(self) -> Optional[ImplementationRecord]:
        records = self.records()
        return records[-1] if records else None

    @property
    def current_version(self) -> int:
        latest = self.latest()
        return latest.version if latest else 0
