"""
Cross-chain manager clients.

The cross-chain manager is the trusted message relay contract.  The proxy
only ever asks it for one thing: "deliver this call to that contract on
that chain".  ``CrossChainManager`` is that capability;
``LocalCrossChainManager`` is an in-process implementation that records
every accepted call as a ``CrossChainMessage`` in an outbox, from which a
``ChainRouter`` (see ``lockproxy.relay``) delivers it.
"""

from __future__ import annotations

import abc
import hashlib
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

from .runtime import Runtime

logger = logging.getLogger("lockproxy.manager")


class CrossChainManager(abc.ABC):
    """Capability interface of the cross-chain manager contract."""

    @property
    @abc.abstractmethod
    def address(self) -> bytes:
        """Well-known address; the only caller allowed to invoke ``unlock``."""

    @abc.abstractmethod
    def cross_chain(self, to_chain_id: int, to_contract: bytes,
                    method: str, args: bytes) -> bool: ...


# ---------------------------------------------------------------------------
# Cross-Chain Message
# ---------------------------------------------------------------------------

class MessageStatus(Enum):
    PENDING = auto()
    DELIVERED = auto()
    FAILED = auto()


@dataclass
class CrossChainMessage:
    """One call accepted by a manager, waiting for delivery.

    Fields
    ------
    msg_id : str
        Globally unique identifier (UUID4 hex).
    nonce : int
        Monotonic per ``(from_chain_id, to_chain_id)`` pair.
    from_contract : bytes
        The contract that called ``cross_chain`` (the source proxy).
    args : bytes
        Opaque payload handed to ``method`` on the destination.
    """

    msg_id: str = ""
    nonce: int = 0
    from_chain_id: int = 0
    to_chain_id: int = 0
    from_contract: bytes = b""
    to_contract: bytes = b""
    method: str = ""
    args: bytes = b""
    timestamp: float = 0.0
    status: MessageStatus = MessageStatus.PENDING
    error: str = ""

    def compute_hash(self) -> str:
        """Deterministic hash of message contents (excludes status)."""
        data = json.dumps({
            "msg_id": self.msg_id,
            "nonce": self.nonce,
            "from_chain_id": self.from_chain_id,
            "to_chain_id": self.to_chain_id,
            "from_contract": self.from_contract.hex(),
            "to_contract": self.to_contract.hex(),
            "method": self.method,
            "args": self.args.hex(),
        }, sort_keys=True)
        return hashlib.sha256(data.encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "msg_id": self.msg_id,
            "nonce": self.nonce,
            "from_chain_id": self.from_chain_id,
            "to_chain_id": self.to_chain_id,
            "from_contract": self.from_contract.hex(),
            "to_contract": self.to_contract.hex(),
            "method": self.method,
            "args": self.args.hex(),
            "timestamp": self.timestamp,
            "status": self.status.name,
            "error": self.error,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "CrossChainMessage":
        data = dict(data)
        status_name = data.pop("status", "PENDING")
        for name in ("from_contract", "to_contract", "args"):
            data[name] = bytes.fromhex(data.get(name, ""))
        msg = CrossChainMessage(**data)
        msg.status = MessageStatus[status_name]
        return msg


# ---------------------------------------------------------------------------
# Local manager
# ---------------------------------------------------------------------------

class LocalCrossChainManager(CrossChainManager):
    """In-process manager contract for one chain.

    The sender of each message is the runtime's calling script at the time
    of the ``cross_chain`` call, i.e. the proxy that asked for delivery.
    """

    def __init__(self, address: bytes, chain_id: int, runtime: Runtime):
        self._address = bytes(address)
        self.chain_id = chain_id
        self._runtime = runtime
        self._outbox: List[CrossChainMessage] = []
        self._nonce_seq: Dict[Tuple[int, int], int] = {}
        self._message_log: List[CrossChainMessage] = []
        self.accepting = True

    @property
    def address(self) -> bytes:
        return self._address

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    def cross_chain(self, to_chain_id: int, to_contract: bytes,
                    method: str, args: bytes) -> bool:
        if not self.accepting:
            logger.warning("Manager %s is not accepting messages", self._address.hex())
            return False
        if to_chain_id < 0 or to_chain_id == self.chain_id:
            logger.warning("Manager: invalid destination chain %d", to_chain_id)
            return False
        if not to_contract or not method:
            logger.warning("Manager: destination contract and method are required")
            return False

        pair = (self.chain_id, to_chain_id)
        nonce = self._nonce_seq.get(pair, 0)
        self._nonce_seq[pair] = nonce + 1

        msg = CrossChainMessage(
            msg_id=uuid.uuid4().hex,
            nonce=nonce,
            from_chain_id=self.chain_id,
            to_chain_id=to_chain_id,
            from_contract=self._runtime.calling_script,
            to_contract=bytes(to_contract),
            method=method,
            args=bytes(args),
            timestamp=time.time(),
        )
        self._outbox.append(msg)
        self._message_log.append(msg)
        logger.info(
            "Manager: queued msg %s (nonce=%d) %d -> %d %s",
            msg.msg_id[:8], nonce, self.chain_id, to_chain_id, method,
        )
        return True

    # -- Outbox ------------------------------------------------------------

    @property
    def outbox(self) -> List[CrossChainMessage]:
        return list(self._outbox)

    def pop_outbox(self) -> List[CrossChainMessage]:
        msgs, self._outbox = self._outbox, []
        return msgs

    def get_message_log(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self._message_log]

    def find(self, msg_id: str) -> Optional[CrossChainMessage]:
        for msg in self._message_log:
            if msg.msg_id == msg_id:
                return msg
        return None
