"""Deployment configuration for a lock proxy."""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from .address import parse_hash160, to_hex


class ProxyConfig:
    """Configuration for a lock proxy deployment.

    Addresses may be given as raw bytes or hex strings (``0x`` optional)
    and are stored as 20-byte values.
    """

    def __init__(self, **kwargs):
        self.chain_id: int = int(kwargs.get("chain_id", 0))
        self.proxy_address: bytes = parse_hash160(kwargs.get("proxy_address", b"\x00" * 20))
        self.ccmc_address: bytes = parse_hash160(kwargs.get("ccmc_address", b"\x00" * 20))
        self.operator_address: bytes = parse_hash160(kwargs.get("operator_address", b"\x00" * 20))
        self.storage_backend: str = kwargs.get("storage_backend", "memory")
        self.db_path: Optional[str] = kwargs.get("db_path", None)

        if self.chain_id < 0:
            raise ValueError(f"chain_id must be non-negative, got {self.chain_id}")
        if self.storage_backend == "sqlite" and not self.db_path:
            raise ValueError("sqlite storage requires db_path")

    def storage_kwargs(self) -> Dict[str, Any]:
        if self.storage_backend == "sqlite":
            return {"db_path": self.db_path}
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "proxy_address": to_hex(self.proxy_address),
            "ccmc_address": to_hex(self.ccmc_address),
            "operator_address": to_hex(self.operator_address),
            "storage_backend": self.storage_backend,
            "db_path": self.db_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProxyConfig":
        return cls(**data)

    @classmethod
    def from_file(cls, path: str) -> "ProxyConfig":
        """Load a JSON config; a relative ``db_path`` is resolved against
        the config file's directory."""
        with open(path, "r") as f:
            data = json.load(f)
        db_path = data.get("db_path")
        if db_path and not os.path.isabs(db_path):
            data["db_path"] = os.path.join(os.path.dirname(os.path.abspath(path)), db_path)
        return cls.from_dict(data)
