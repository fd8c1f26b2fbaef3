"""
Notifications emitted by the proxy and the reference ledger.

Every event is a ``ProxyEvent`` with a canonical name and a flat data
dict; byte strings are rendered as hex so events serialize cleanly.
``EventLog`` collects events and fans them out to subscribers.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("lockproxy.events")


def _hex(value: Optional[bytes]) -> str:
    return bytes(value).hex() if value else ""


@dataclass
class ProxyEvent:
    """Base event."""
    event_name: str
    contract_address: str = ""
    timestamp: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_name,
            "contract": self.contract_address,
            "timestamp": self.timestamp,
            **self.data,
        }


class LockEvent(ProxyEvent):
    def __init__(self, from_asset_hash: bytes, from_address: bytes,
                 to_chain_id: int, to_asset_hash: bytes, to_address: bytes,
                 amount: int, contract_address: bytes = b""):
        super().__init__(
            event_name="LockEvent",
            contract_address=_hex(contract_address),
            data={
                "from_asset_hash": _hex(from_asset_hash),
                "from_address": _hex(from_address),
                "to_chain_id": to_chain_id,
                "to_asset_hash": _hex(to_asset_hash),
                "to_address": _hex(to_address),
                "amount": amount,
            },
        )


class UnlockEvent(ProxyEvent):
    def __init__(self, to_asset_hash: bytes, to_address: bytes, amount: int,
                 contract_address: bytes = b""):
        super().__init__(
            event_name="UnlockEvent",
            contract_address=_hex(contract_address),
            data={
                "to_asset_hash": _hex(to_asset_hash),
                "to_address": _hex(to_address),
                "amount": amount,
            },
        )


class BindProxyHashEvent(ProxyEvent):
    def __init__(self, to_chain_id: int, target_proxy_hash: bytes,
                 contract_address: bytes = b""):
        super().__init__(
            event_name="BindProxyHashEvent",
            contract_address=_hex(contract_address),
            data={
                "to_chain_id": to_chain_id,
                "target_proxy_hash": _hex(target_proxy_hash),
            },
        )


class BindAssetHashEvent(ProxyEvent):
    def __init__(self, from_asset_hash: bytes, to_chain_id: int,
                 to_asset_hash: bytes, balance: int,
                 contract_address: bytes = b""):
        super().__init__(
            event_name="BindAssetHashEvent",
            contract_address=_hex(contract_address),
            data={
                "from_asset_hash": _hex(from_asset_hash),
                "to_chain_id": to_chain_id,
                "to_asset_hash": _hex(to_asset_hash),
                "balance": balance,
            },
        )


class UpgradeEvent(ProxyEvent):
    def __init__(self, version: int, code_hash: str, name: str,
                 contract_address: bytes = b""):
        super().__init__(
            event_name="UpgradeEvent",
            contract_address=_hex(contract_address),
            data={"version": version, "code_hash": code_hash, "name": name},
        )


class TransferEvent(ProxyEvent):
    """Ledger transfer; *from_addr* is empty for mints."""
    def __init__(self, from_addr: bytes, to_addr: bytes, amount: int,
                 contract_address: bytes = b""):
        super().__init__(
            event_name="Transfer",
            contract_address=_hex(contract_address),
            data={"from": _hex(from_addr), "to": _hex(to_addr), "amount": amount},
        )


class OwnershipTransferredEvent(ProxyEvent):
    def __init__(self, previous_owner: bytes, new_owner: bytes,
                 contract_address: bytes = b""):
        super().__init__(
            event_name="TransferOwnership",
            contract_address=_hex(contract_address),
            data={"previous_owner": _hex(previous_owner), "new_owner": _hex(new_owner)},
        )


Listener = Callable[[ProxyEvent], None]


class EventLog:
    """Ordered event sink with subscribers."""

    def __init__(self):
        self._events: List[ProxyEvent] = []
        self._listeners: List[Listener] = []

    def emit(self, event: ProxyEvent) -> None:
        self._events.append(event)
        logger.debug("Event %s %s", event.event_name, event.data)
        for listener in list(self._listeners):
            listener(event)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def filter(self, event_name: Optional[str] = None) -> List[ProxyEvent]:
        if event_name is None:
            return list(self._events)
        return [e for e in self._events if e.event_name == event_name]

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))
