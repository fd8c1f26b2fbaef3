"""
Invocation context supplied by the host environment.

The host tells contracts about the current invocation: which
accounts signed it (``check_witness``) and which contract is making the
current call (``calling_script``).  It also knows which addresses
are deployed contracts and whether each accepts incoming assets
(``is_payable``).  When the proxy calls out to a ledger
it does so inside ``invoke(proxy_address)``, so the ledger sees the proxy
as its caller and may move the proxy's custody balance.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Set

logger = logging.getLogger("lockproxy.runtime")


class Runtime:
    """Witness oracle plus a stack of calling script hashes."""

    def __init__(self, witnesses: Iterable[bytes] = (), calling_script: bytes = b""):
        self._witnesses: Set[bytes] = {bytes(w) for w in witnesses}
        self._script_stack: List[bytes] = [bytes(calling_script)]
        self._contracts: Dict[bytes, bool] = {}

    def check_witness(self, address: bytes) -> bool:
        return bytes(address) in self._witnesses

    @property
    def calling_script(self) -> bytes:
        return self._script_stack[-1]

    @property
    def depth(self) -> int:
        return len(self._script_stack) - 1

    @contextmanager
    def invoke(self, script_hash: bytes) -> Iterator[None]:
        """Run the enclosed calls with *script_hash* as the calling script."""
        self._script_stack.append(bytes(script_hash))
        try:
            yield
        finally:
            self._script_stack.pop()

    @contextmanager
    def signed_by(self, *addresses: bytes) -> Iterator[None]:
        """Temporarily add *addresses* to the witness set."""
        added = {bytes(a) for a in addresses} - self._witnesses
        self._witnesses |= added
        try:
            yield
        finally:
            self._witnesses -= added

    def add_witness(self, address: bytes) -> None:
        self._witnesses.add(bytes(address))

    def clear_witnesses(self) -> None:
        self._witnesses.clear()

    # -- Deployed contracts ------------------------------------------------

    def register_contract(self, script_hash: bytes, payable: bool = False) -> None:
        """Record a deployed contract and whether it accepts incoming assets."""
        self._contracts[bytes(script_hash)] = payable

    def is_contract(self, address: bytes) -> bool:
        return bytes(address) in self._contracts

    def is_payable(self, address: bytes) -> bool:
        """Plain accounts are always payable; contracts only if flagged."""
        return self._contracts.get(bytes(address), True)
