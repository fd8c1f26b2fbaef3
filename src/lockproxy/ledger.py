"""
Asset ledgers the proxy moves funds through.

``AssetLedger`` is the narrow capability the proxy consumes: ``transfer``
and ``balance_of``.  ``FungibleAsset`` is a complete reference ledger in
the NEP-5 mould (owner, pause flag, witness-checked transfers) used for
local deployments and tests.  ``LedgerRegistry`` resolves an asset hash
to the ledger instance that manages it.

Usage::

    runtime = Runtime(witnesses=[owner])
    token = FungibleAsset(asset_hash, runtime, owner=owner,
                          name="pONT NEP5", symbol="pONT", decimals=9,
                          total_supply=10 ** 18)
    token.deploy()
    token.transfer(owner, alice, 500)
"""

from __future__ import annotations

import abc
import logging
from typing import Dict, List, Optional

from .address import ZERO_ADDRESS, is_legal_address
from .events import EventLog, OwnershipTransferredEvent, ProxyEvent, TransferEvent, UpgradeEvent
from .runtime import Runtime
from .upgrade import ImplementationRecord

logger = logging.getLogger("lockproxy.ledger")


# ══════════════════════════════════════════════════════════════════════
#  Capability interface
# ══════════════════════════════════════════════════════════════════════

class AssetLedger(abc.ABC):
    """Capability interface over a fungible-token contract."""

    @property
    @abc.abstractmethod
    def asset_hash(self) -> bytes: ...

    @abc.abstractmethod
    def transfer(self, from_addr: bytes, to_addr: bytes, amount: int) -> bool: ...

    @abc.abstractmethod
    def balance_of(self, account: bytes) -> int: ...


# ══════════════════════════════════════════════════════════════════════
#  Reference fungible ledger
# ══════════════════════════════════════════════════════════════════════

class FungibleAsset(AssetLedger):
    """Reference NEP-5 style token.

    Transfers never raise: every rejection is logged and reported as
    ``False``, which is what the proxy expects from a ledger.
    """

    SUPPORTED_STANDARDS = ("NEP-5", "NEP-7", "NEP-10")

    def __init__(self, asset_hash: bytes, runtime: Runtime, owner: bytes,
                 name: str = "", symbol: str = "", decimals: int = 8,
                 total_supply: int = 0, events: Optional[EventLog] = None):
        self._asset_hash = bytes(asset_hash)
        self._runtime = runtime
        self._owner = bytes(owner)
        self._name = name
        self._symbol = symbol
        self._decimals = decimals
        self._initial_supply = total_supply
        self._total_supply = 0
        self._deployed = False
        self._paused = False
        self._balances: Dict[bytes, int] = {}
        self._implementations: List[ImplementationRecord] = []
        self.events = events if events is not None else EventLog()

    @property
    def asset_hash(self) -> bytes:
        return self._asset_hash

    def name(self) -> str:
        return self._name

    def symbol(self) -> str:
        return self._symbol

    def decimals(self) -> int:
        return self._decimals

    def total_supply(self) -> int:
        return self._total_supply

    def supported_standards(self) -> List[str]:
        return list(self.SUPPORTED_STANDARDS)

    # ── Deployment ────────────────────────────────────────────────

    def deploy(self) -> bool:
        """Mint the configured total supply to the owner, once."""
        if not self._runtime.check_witness(self._owner):
            logger.warning("Only owner can deploy %s", self._symbol or self._asset_hash.hex())
            return False
        if self._deployed:
            logger.warning("%s already deployed", self._symbol or self._asset_hash.hex())
            return False
        self._deployed = True
        self._total_supply = self._initial_supply
        self._balances[self._owner] = self._initial_supply
        self._emit(TransferEvent(b"", self._owner, self._initial_supply, self._asset_hash))
        return True

    def is_deployed(self) -> bool:
        return self._deployed

    # ── Balances & transfers ──────────────────────────────────────

    def balance_of(self, account: bytes) -> int:
        if not is_legal_address(account):
            logger.debug("balance_of called with illegal address")
            return 0
        return self._balances.get(bytes(account), 0)

    def transfer(self, from_addr: bytes, to_addr: bytes, amount: int) -> bool:
        from_addr, to_addr = bytes(from_addr), bytes(to_addr)
        if self._paused:
            return self._reject("%s is paused", self._symbol)
        if not is_legal_address(from_addr) or not is_legal_address(to_addr):
            return self._reject("from and to must be legal addresses")
        if amount <= 0:
            return self._reject("amount must be greater than 0, got %s", amount)
        if not self._runtime.is_payable(to_addr):
            return self._reject("the to account %s is not payable", to_addr.hex())
        if not (self._runtime.check_witness(from_addr)
                or self._runtime.calling_script == from_addr):
            return self._reject("transfer not authorized by %s", from_addr.hex())

        from_amount = self._balances.get(from_addr, 0)
        if from_amount < amount:
            return self._reject(
                "insufficient funds: have %d, need %d", from_amount, amount
            )
        if from_addr == to_addr:
            return True

        if from_amount == amount:
            del self._balances[from_addr]
        else:
            self._balances[from_addr] = from_amount - amount
        self._balances[to_addr] = self._balances.get(to_addr, 0) + amount

        self._emit(TransferEvent(from_addr, to_addr, amount, self._asset_hash))
        return True

    # ── Upgrade ───────────────────────────────────────────────────

    def upgrade(self, script: bytes, name: str = "", version: str = "",
                author: str = "", email: str = "", description: str = "") -> bool:
        """Replace the token code; balances, owner and pause flag are kept."""
        if not self._runtime.check_witness(self._owner):
            return self._reject("only owner can upgrade")
        if not script:
            return self._reject("upgrade script is empty")
        record = ImplementationRecord(
            version=len(self._implementations) + 1,
            code_hash=ImplementationRecord.hash_code(bytes(script)),
            name=name,
            version_label=version,
            author=author,
            email=email,
            description=description,
            deployer=self._owner.hex(),
        )
        self._implementations.append(record)
        self._emit(UpgradeEvent(record.version, record.code_hash, name, self._asset_hash))
        logger.info("%s upgraded to v%d", self._symbol or self._asset_hash.hex(), record.version)
        return True

    def implementation_history(self) -> List[ImplementationRecord]:
        return list(self._implementations)

    # ── Owner management ──────────────────────────────────────────

    def get_owner(self) -> bytes:
        return self._owner

    def transfer_ownership(self, new_owner: bytes) -> bool:
        if not self._runtime.check_witness(self._owner):
            return self._reject("only owner can transfer ownership")
        if not is_legal_address(new_owner):
            return self._reject("new owner must be a legal address")
        previous, self._owner = self._owner, bytes(new_owner)
        self._emit(OwnershipTransferredEvent(previous, self._owner, self._asset_hash))
        return True

    # ── Pause ─────────────────────────────────────────────────────

    def pause(self) -> bool:
        if not self._runtime.check_witness(self._owner):
            return self._reject("only owner can pause")
        self._paused = True
        return True

    def unpause(self) -> bool:
        if not self._runtime.check_witness(self._owner):
            return self._reject("only owner can unpause")
        self._paused = False
        return True

    def is_paused(self) -> bool:
        return self._paused

    # ── Helpers ───────────────────────────────────────────────────

    def _reject(self, message: str, *args) -> bool:
        logger.warning("%s: " + message, self._symbol or self._asset_hash.hex(), *args)
        return False

    def _emit(self, event: ProxyEvent) -> None:
        self.events.emit(event)

    def to_dict(self) -> Dict[str, object]:
        return {
            "asset_hash": self._asset_hash.hex(),
            "name": self._name,
            "symbol": self._symbol,
            "decimals": self._decimals,
            "total_supply": self._total_supply,
            "owner": self._owner.hex(),
            "paused": self._paused,
            "balances": {k.hex(): v for k, v in self._balances.items()},
        }


# ══════════════════════════════════════════════════════════════════════
#  Ledger resolution
# ══════════════════════════════════════════════════════════════════════

class LedgerRegistry:
    """Maps asset hashes to ledger instances (one ledger per asset)."""

    def __init__(self, ledgers: Optional[List[AssetLedger]] = None):
        self._ledgers: Dict[bytes, AssetLedger] = {}
        for ledger in ledgers or []:
            self.register(ledger)

    def register(self, ledger: AssetLedger) -> None:
        key = bytes(ledger.asset_hash)
        if key == ZERO_ADDRESS:
            raise ValueError("Cannot register a ledger under the zero address")
        self._ledgers[key] = ledger

    def get(self, asset_hash: bytes) -> Optional[AssetLedger]:
        return self._ledgers.get(bytes(asset_hash))

    def __contains__(self, asset_hash: bytes) -> bool:
        return bytes(asset_hash) in self._ledgers

    def __len__(self) -> int:
        return len(self._ledgers)
