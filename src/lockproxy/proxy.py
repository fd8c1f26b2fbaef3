"""
Lock Proxy - Protocol Core

The lock proxy holds fungible assets in custody on this chain and asks a
paired proxy on a remote chain to release the matching asset there.

  1. **Lock** (outbound) - pull ``amount`` from the user into custody,
     serialize a ``TransferInstruction`` for the bound remote asset, and
     hand it to the cross-chain manager addressed to the bound remote
     proxy's ``unlock`` method.

  2. **Unlock** (inbound) - accepted only from the cross-chain manager
     and only on behalf of the proxy bound for the source chain; decodes
     the instruction and releases the asset from custody.

  3. **Administration** - proxy/asset bindings and upgrades, gated on
     the operator's witness.

Every operation validates everything it can before the first external
effect.  The one effect that can fail after funds have moved, the relay
submission in ``lock``, is followed by a compensating refund.

Usage::

    proxy = LockProxy(proxy_address, operator, manager, runtime, ledgers)
    with runtime.signed_by(operator):
        proxy.bind_proxy_hash(2, remote_proxy)
        proxy.bind_asset_hash(asset, 2, remote_asset)
    with runtime.signed_by(alice):
        receipt = proxy.lock(asset, alice, 2, bob, 100)
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .address import ADDRESS_SIZE, is_hash160
from .codec import UINT256_MAX, TransferInstruction
from .config import ProxyConfig
from .errors import CodecError, ErrorKind, InvariantViolation, ProxyError
from .events import (
    BindAssetHashEvent,
    BindProxyHashEvent,
    EventLog,
    LockEvent,
    ProxyEvent,
    UnlockEvent,
    UpgradeEvent,
)
from .ledger import AssetLedger, LedgerRegistry
from .manager import CrossChainManager
from .registry import BindingRegistry
from .runtime import Runtime
from .storage import JournaledStorage, MemoryBackend, StorageBackend, get_storage_backend
from .upgrade import ImplementationRecord, UpgradeHistory

logger = logging.getLogger("lockproxy.proxy")

UNLOCK_METHOD = "unlock"


# ---------------------------------------------------------------------------
# Receipt
# ---------------------------------------------------------------------------

@dataclass
class ProxyReceipt:
    """Outcome of a proxy operation.  Truthy on success."""
    success: bool = True
    error: Optional[ProxyError] = None
    reason: str = ""
    return_value: Any = None
    events: List[ProxyEvent] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    @classmethod
    def ok(cls, return_value: Any = True, *events: ProxyEvent) -> "ProxyReceipt":
        return cls(success=True, return_value=return_value, events=list(events))

    @classmethod
    def fail(cls, error: ProxyError, reason: str) -> "ProxyReceipt":
        return cls(success=False, error=error, reason=reason, return_value=False)

    def to_dict(self) -> Dict[str, Any]:
        value = self.return_value
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).hex()
        return {
            "success": self.success,
            "error": self.error.value if self.error else "",
            "kind": self.kind.value if self.kind else "",
            "reason": self.reason,
            "return_value": value,
            "events": [e.to_dict() for e in self.events],
        }


def _non_reentrant(method):
    """Reject a call that arrives while another operation is in flight."""

    @functools.wraps(method)
    def wrapper(self: "LockProxy", *args, **kwargs) -> ProxyReceipt:
        if self._entered:
            return self._reject(
                ProxyError.REENTRANT_CALL,
                f"{method.__name__} called while an operation is in progress",
            )
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper


# ---------------------------------------------------------------------------
# Lock Proxy
# ---------------------------------------------------------------------------

class LockProxy:
    """Cross-chain lock/unlock proxy for fungible assets.

    Parameters
    ----------
    address :
        This proxy's own 20-byte address; custody balances are held here.
    operator :
        The administrator principal whose witness gates every binding
        change and upgrade.
    manager :
        Cross-chain manager client.  Its ``address`` is the only caller
        allowed to invoke ``unlock``.
    runtime :
        Host invocation context (witnesses, calling script).
    ledgers :
        Resolves asset hashes to ledgers.
    storage :
        Backend for bindings and upgrade history (in-memory by default).
    """

    def __init__(
        self,
        address: bytes,
        operator: bytes,
        manager: CrossChainManager,
        runtime: Runtime,
        ledgers: LedgerRegistry,
        storage: Optional[StorageBackend] = None,
        events: Optional[EventLog] = None,
    ):
        if not is_hash160(address):
            raise ValueError("Proxy address must be 20 bytes")
        if not is_hash160(operator):
            raise ValueError("Operator address must be 20 bytes")
        self._address = bytes(address)
        self._operator = bytes(operator)
        self._manager = manager
        self._runtime = runtime
        self._ledgers = ledgers
        self._storage = storage if storage is not None else MemoryBackend()
        self._registry = BindingRegistry(self._storage)
        self.events = events if events is not None else EventLog()
        self._entered = False

    @classmethod
    def from_config(
        cls,
        config: ProxyConfig,
        manager: CrossChainManager,
        runtime: Runtime,
        ledgers: Optional[LedgerRegistry] = None,
    ) -> "LockProxy":
        if manager.address != config.ccmc_address:
            raise ValueError("Manager address does not match configured ccmc_address")
        storage = get_storage_backend(config.storage_backend, **config.storage_kwargs())
        return cls(
            address=config.proxy_address,
            operator=config.operator_address,
            manager=manager,
            runtime=runtime,
            ledgers=ledgers or LedgerRegistry(),
            storage=storage,
        )

    # -- Properties --------------------------------------------------------

    @property
    def address(self) -> bytes:
        return self._address

    @property
    def operator(self) -> bytes:
        return self._operator

    @property
    def ccmc_address(self) -> bytes:
        return self._manager.address

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    @property
    def registry(self) -> BindingRegistry:
        return self._registry

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    # -- Administration ----------------------------------------------------

    @_non_reentrant
    def bind_proxy_hash(self, to_chain_id: int, target_proxy_hash: bytes) -> ProxyReceipt:
        """Trust *target_proxy_hash* as the proxy on *to_chain_id*."""
        if not self._is_operator():
            return self._reject(ProxyError.UNAUTHORIZED, "bindProxyHash requires operator witness")
        if to_chain_id < 0:
            return self._reject(ProxyError.NEGATIVE_CHAIN_ID, f"chain id {to_chain_id} is negative")
        if not target_proxy_hash:
            return self._reject(ProxyError.INVALID_PROXY_HASH, "target proxy hash is empty")

        with self._transaction() as journal:
            BindingRegistry(journal).bind_proxy(to_chain_id, target_proxy_hash)

        event = BindProxyHashEvent(to_chain_id, target_proxy_hash, self._address)
        self.events.emit(event)
        logger.info("Bound proxy %s on chain %d", bytes(target_proxy_hash).hex(), to_chain_id)
        return ProxyReceipt.ok(True, event)

    @_non_reentrant
    def bind_asset_hash(self, from_asset_hash: bytes, to_chain_id: int,
                        to_asset_hash: bytes) -> ProxyReceipt:
        """Map local *from_asset_hash* to *to_asset_hash* on *to_chain_id*."""
        if not self._is_operator():
            return self._reject(ProxyError.UNAUTHORIZED, "bindAssetHash requires operator witness")
        if not is_hash160(from_asset_hash):
            return self._reject(
                ProxyError.INVALID_ASSET_HASH,
                f"from asset hash must be {ADDRESS_SIZE} bytes, got {len(from_asset_hash)}",
            )
        if to_chain_id < 0:
            return self._reject(ProxyError.NEGATIVE_CHAIN_ID, f"chain id {to_chain_id} is negative")
        if not to_asset_hash:
            return self._reject(ProxyError.INVALID_ASSET_HASH, "target asset hash is empty")

        with self._transaction() as journal:
            added = BindingRegistry(journal).bind_asset(
                from_asset_hash, to_chain_id, to_asset_hash
            )

        if not added:
            logger.info("From asset hash %s already registered", bytes(from_asset_hash).hex())
        balance = self.get_asset_balance(from_asset_hash)
        event = BindAssetHashEvent(
            from_asset_hash, to_chain_id, to_asset_hash, balance, self._address
        )
        self.events.emit(event)
        logger.info(
            "Bound asset %s -> %s on chain %d",
            bytes(from_asset_hash).hex(), bytes(to_asset_hash).hex(), to_chain_id,
        )
        return ProxyReceipt.ok(True, event)

    @_non_reentrant
    def upgrade(self, script: bytes, name: str = "", version: str = "",
                author: str = "", email: str = "", description: str = "") -> ProxyReceipt:
        """Record a replacement implementation; storage is kept as is."""
        if not self._is_operator():
            return self._reject(ProxyError.UNAUTHORIZED, "upgrade requires operator witness")
        if not script:
            return self._reject(ProxyError.INVALID_ARGUMENTS, "upgrade script is empty")

        with self._transaction() as journal:
            history = UpgradeHistory(journal)
            record = ImplementationRecord(
                version=history.current_version + 1,
                code_hash=ImplementationRecord.hash_code(bytes(script)),
                name=name,
                version_label=version,
                author=author,
                email=email,
                description=description,
                deployer=self._operator.hex(),
            )
            history.append(record)

        event = UpgradeEvent(record.version, record.code_hash, name, self._address)
        self.events.emit(event)
        logger.info("Proxy upgraded to v%d (%s)", record.version, record.code_hash[:16])
        return ProxyReceipt.ok(record.version, event)

    def implementation_history(self) -> List[ImplementationRecord]:
        return UpgradeHistory(self._storage).records()

    # -- Queries -----------------------------------------------------------

    def get_proxy_hash(self, to_chain_id: int) -> bytes:
        """Bound remote proxy for *to_chain_id*, or ``b""``."""
        return self._registry.lookup_proxy(to_chain_id) or b""

    def get_asset_hash(self, from_asset_hash: bytes, to_chain_id: int) -> bytes:
        """Bound remote asset for the pair, or ``b""``."""
        return self._registry.lookup_asset(from_asset_hash, to_chain_id) or b""

    def get_asset_balance(self, asset_hash: bytes) -> int:
        """Custody balance this proxy holds of *asset_hash*."""
        ledger = self._ledgers.get(asset_hash)
        if ledger is None:
            return 0
        return ledger.balance_of(self._address)

    # -- Lock --------------------------------------------------------------

    @_non_reentrant
    def lock(self, from_asset_hash: bytes, from_address: bytes, to_chain_id: int,
             to_address: bytes, amount: int) -> ProxyReceipt:
        """Lock *amount* of *from_asset_hash* and request release on *to_chain_id*."""
        if not is_hash160(from_asset_hash):
            return self._reject(
                ProxyError.INVALID_ASSET_HASH,
                f"fromAssetHash must be {ADDRESS_SIZE} bytes, got {len(from_asset_hash)}",
            )
        if not is_hash160(from_address):
            return self._reject(
                ProxyError.INVALID_FROM_ADDRESS,
                f"fromAddress must be {ADDRESS_SIZE} bytes, got {len(from_address)}",
            )
        if bytes(from_address) == self._address:
            return self._reject(
                ProxyError.INVALID_FROM_ADDRESS, "fromAddress cannot be the proxy's custody account"
            )
        if not to_address:
            return self._reject(ProxyError.EMPTY_TO_ADDRESS, "toAddress must not be empty")
        if amount < 0:
            return self._reject(ProxyError.NEGATIVE_AMOUNT, f"amount {amount} is negative")
        if amount > UINT256_MAX:
            return self._reject(ProxyError.AMOUNT_OUT_OF_RANGE, "amount exceeds uint256")

        to_asset_hash = self._registry.lookup_asset(from_asset_hash, to_chain_id)
        if to_asset_hash is None:
            return self._reject(
                ProxyError.UNBOUND_ASSET,
                f"no target asset bound for {bytes(from_asset_hash).hex()} on chain {to_chain_id}",
            )
        to_proxy_hash = self._registry.lookup_proxy(to_chain_id)
        if to_proxy_hash is None:
            return self._reject(
                ProxyError.UNBOUND_PROXY, f"no target proxy bound on chain {to_chain_id}"
            )
        ledger = self._ledgers.get(from_asset_hash)
        if ledger is None:
            return self._reject(
                ProxyError.UNKNOWN_LEDGER,
                f"no ledger for asset {bytes(from_asset_hash).hex()}",
            )

        payload = TransferInstruction(to_asset_hash, bytes(to_address), amount).encode()

        # first external effect
        with self._runtime.invoke(self._address):
            pulled = ledger.transfer(from_address, self._address, amount)
        if not pulled:
            return self._reject(
                ProxyError.LEDGER_TRANSFER_FAILED,
                "failed to transfer asset into proxy custody",
            )

        try:
            with self._runtime.invoke(self._address):
                relayed = self._manager.cross_chain(
                    to_chain_id, to_proxy_hash, UNLOCK_METHOD, payload
                )
        except Exception:
            self._refund(ledger, from_address, amount)
            raise
        if not relayed:
            self._refund(ledger, from_address, amount)
            return self._reject(ProxyError.CROSS_CHAIN_FAILED, "cross-chain manager rejected the call")

        event = LockEvent(
            from_asset_hash, from_address, to_chain_id, to_asset_hash,
            to_address, amount, self._address,
        )
        self.events.emit(event)
        logger.info(
            "Locked %d of %s from %s -> chain %d (%s)",
            amount, bytes(from_asset_hash).hex(), bytes(from_address).hex(),
            to_chain_id, bytes(to_address).hex(),
        )
        return ProxyReceipt.ok(True, event)

    def _refund(self, ledger: AssetLedger, from_address: bytes, amount: int) -> None:
        with self._runtime.invoke(self._address):
            refunded = ledger.transfer(self._address, from_address, amount)
        if not refunded:
            raise InvariantViolation(
                f"could not return {amount} of {bytes(ledger.asset_hash).hex()} "
                f"to {bytes(from_address).hex()} after a failed relay"
            )
        logger.warning("Refunded %d to %s after failed relay", amount, bytes(from_address).hex())

    # -- Unlock ------------------------------------------------------------

    @_non_reentrant
    def unlock(self, args: bytes, from_proxy_contract: bytes, from_chain_id: int,
               caller: bytes) -> ProxyReceipt:
        """Release custody funds per a relayed instruction.

        *caller* is the authenticated identity of whoever invoked this
        entry point; only the cross-chain manager is accepted.
        """
        if bytes(caller) != self._manager.address:
            return self._reject(
                ProxyError.UNTRUSTED_CALLER,
                f"unlock called by {bytes(caller).hex()}, not the cross-chain manager",
            )
        stored_proxy = self._registry.lookup_proxy(from_chain_id)
        if stored_proxy is None or bytes(from_proxy_contract) != stored_proxy:
            return self._reject(
                ProxyError.UNTRUSTED_SOURCE_PROXY,
                f"{bytes(from_proxy_contract).hex()} is not the bound proxy of chain {from_chain_id}",
            )

        try:
            instruction = TransferInstruction.decode(args)
        except CodecError as exc:
            return self._reject(ProxyError.MALFORMED_PAYLOAD, f"cannot decode payload: {exc}")

        if not is_hash160(instruction.asset_hash):
            return self._reject(
                ProxyError.INVALID_ASSET_HASH,
                f"asset hash must be {ADDRESS_SIZE} bytes, got {len(instruction.asset_hash)}",
            )
        if not is_hash160(instruction.recipient):
            return self._reject(
                ProxyError.INVALID_TO_ADDRESS,
                f"recipient must be {ADDRESS_SIZE} bytes, got {len(instruction.recipient)}",
            )
        if instruction.amount < 0:
            return self._reject(ProxyError.NEGATIVE_AMOUNT, "amount is negative")
        ledger = self._ledgers.get(instruction.asset_hash)
        if ledger is None:
            return self._reject(
                ProxyError.UNKNOWN_LEDGER,
                f"no ledger for asset {instruction.asset_hash.hex()}",
            )

        with self._runtime.invoke(self._address):
            released = ledger.transfer(self._address, instruction.recipient, instruction.amount)
        if not released:
            return self._reject(
                ProxyError.LEDGER_TRANSFER_FAILED, "failed to release asset from custody"
            )

        event = UnlockEvent(
            instruction.asset_hash, instruction.recipient, instruction.amount, self._address
        )
        self.events.emit(event)
        logger.info(
            "Unlocked %d of %s to %s (from chain %d)",
            instruction.amount, instruction.asset_hash.hex(),
            instruction.recipient.hex(), from_chain_id,
        )
        return ProxyReceipt.ok(True, event)

    # -- Helpers -----------------------------------------------------------

    def _is_operator(self) -> bool:
        return self._runtime.check_witness(self._operator)

    @contextmanager
    def _transaction(self) -> Iterator[JournaledStorage]:
        """Journal storage writes; commit only if the block completes."""
        journal = JournaledStorage(self._storage)
        try:
            yield journal
        except Exception:
            journal.rollback()
            raise
        journal.commit()

    def _reject(self, error: ProxyError, reason: str) -> ProxyReceipt:
        logger.warning("Proxy rejected (%s): %s", error.value, reason)
        return ProxyReceipt.fail(error, reason)

    def get_info(self) -> Dict[str, Any]:
        return {
            "address": self._address.hex(),
            "operator": self._operator.hex(),
            "ccmc": self._manager.address.hex(),
            "proxies": {cid: h.hex() for cid, h in self._registry.proxy_bindings().items()},
            "assets": [
                {"from_asset_hash": a.hex(), "to_chain_id": c, "to_asset_hash": t.hex()}
                for a, c, t in self._registry.asset_bindings()
            ],
            "version": UpgradeHistory(self._storage).current_version,
        }
