"""
Lock Proxy - Binding Registry

Typed repository over a ``StorageBackend`` answering "which remote proxy
and which remote asset do we trust for chain X".  Callers never build
storage keys themselves; every key is derived here from typed values.

The registry performs no authorization.  ``LockProxy`` checks the
operator witness before calling any of the ``bind_*`` methods.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .address import ADDRESS_SIZE
from .storage import StorageBackend

logger = logging.getLogger("lockproxy.registry")

NS_PROXY_HASH = "proxy_hash"
NS_ASSET_HASH = "asset_hash"
NS_FROM_ASSET_LIST = "from_asset_list"

# prefix for entries of the known asset set
FROM_ASSET_LIST_PREFIX = b"\x01\x01"


def chain_id_key(chain_id: int) -> bytes:
    """Natural big-integer bytes of *chain_id*: little-endian, minimal,
    with a trailing 0x00 when the top bit of the last byte is set."""
    if chain_id < 0:
        raise ValueError(f"Chain id must be non-negative, got {chain_id}")
    length = chain_id.bit_length() // 8 + 1
    return chain_id.to_bytes(length, "little")


def chain_id_from_key(key: bytes) -> int:
    return int.from_bytes(key, "little")


class BindingRegistry:
    """Persistent proxy and asset bindings."""

    def __init__(self, storage: StorageBackend):
        self._storage = storage

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    # -- Proxy bindings ----------------------------------------------------

    def bind_proxy(self, remote_chain_id: int, remote_proxy_address: bytes) -> None:
        self._storage.put(
            NS_PROXY_HASH, chain_id_key(remote_chain_id), bytes(remote_proxy_address)
        )
        logger.debug("Bound proxy for chain %d", remote_chain_id)

    def lookup_proxy(self, remote_chain_id: int) -> Optional[bytes]:
        if remote_chain_id < 0:
            return None
        value = self._storage.get(NS_PROXY_HASH, chain_id_key(remote_chain_id))
        return value or None

    def proxy_bindings(self) -> Dict[int, bytes]:
        return {
            chain_id_from_key(key): value
            for key, value in self._storage.iterate(NS_PROXY_HASH)
        }

    # -- Asset bindings ----------------------------------------------------

    def bind_asset(
        self,
        local_asset_hash: bytes,
        remote_chain_id: int,
        remote_asset_hash: bytes,
    ) -> bool:
        """Bind *local_asset_hash* on *remote_chain_id* to *remote_asset_hash*.

        Returns ``True`` if the local asset was newly added to the known
        asset set, ``False`` if it was already known.  Either way the
        mapping is overwritten.
        """
        added = self._add_known_asset(local_asset_hash)
        self._storage.put(
            NS_ASSET_HASH,
            self._asset_key(local_asset_hash, remote_chain_id),
            bytes(remote_asset_hash),
        )
        return added

    def lookup_asset(self, local_asset_hash: bytes, remote_chain_id: int) -> Optional[bytes]:
        if remote_chain_id < 0:
            return None
        value = self._storage.get(
            NS_ASSET_HASH, self._asset_key(local_asset_hash, remote_chain_id)
        )
        return value or None

    def asset_bindings(self) -> List[Tuple[bytes, int, bytes]]:
        """All ``(local_asset, remote_chain_id, remote_asset)`` triples."""
        bindings = []
        for key, value in self._storage.iterate(NS_ASSET_HASH):
            local, chain_key = key[:ADDRESS_SIZE], key[ADDRESS_SIZE:]
            bindings.append((local, chain_id_from_key(chain_key), value))
        return bindings

    @staticmethod
    def _asset_key(local_asset_hash: bytes, remote_chain_id: int) -> bytes:
        return bytes(local_asset_hash) + chain_id_key(remote_chain_id)

    # -- Known assets ------------------------------------------------------

    def is_known_asset(self, local_asset_hash: bytes) -> bool:
        return self._storage.has(
            NS_FROM_ASSET_LIST, FROM_ASSET_LIST_PREFIX + bytes(local_asset_hash)
        )

    def known_assets(self) -> List[bytes]:
        return [value for _, value in self._storage.iterate(NS_FROM_ASSET_LIST)]

    def _add_known_asset(self, local_asset_hash: bytes) -> bool:
        if self.is_known_asset(local_asset_hash):
            logger.debug("From asset hash %s already known", bytes(local_asset_hash).hex())
            return False
        self._storage.put(
            NS_FROM_ASSET_LIST,
            FROM_ASSET_LIST_PREFIX + bytes(local_asset_hash),
            bytes(local_asset_hash),
        )
        return True
