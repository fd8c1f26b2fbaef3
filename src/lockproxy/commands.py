"""
Typed commands for the proxy's invocation surface.

A host delivers invocations as ``(method, args)``.  ``parse_invocation``
turns them into one of the command dataclasses below, checking arity and
argument types up front; ``dispatch`` routes a command to the matching
``LockProxy`` operation.  The handler table is checked against the
command set at import time, so adding a command without a handler fails
immediately.
"""

from __future__ import annotations

import logging
from dataclasses import MISSING, dataclass, fields
from typing import Any, Callable, Dict, Sequence, Type, Union

from .address import parse_hex
from .errors import ProxyError
from .proxy import LockProxy, ProxyReceipt

logger = logging.getLogger("lockproxy.commands")


class CommandError(ValueError):
    """Invocation could not be turned into a typed command."""

    def __init__(self, error: ProxyError, message: str):
        super().__init__(message)
        self.error = error


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BindProxyHash:
    to_chain_id: int
    target_proxy_hash: bytes


@dataclass(frozen=True)
class BindAssetHash:
    from_asset_hash: bytes
    to_chain_id: int
    to_asset_hash: bytes


@dataclass(frozen=True)
class GetAssetBalance:
    asset_hash: bytes


@dataclass(frozen=True)
class GetProxyHash:
    to_chain_id: int


@dataclass(frozen=True)
class GetAssetHash:
    from_asset_hash: bytes
    to_chain_id: int


@dataclass(frozen=True)
class Lock:
    from_asset_hash: bytes
    from_address: bytes
    to_chain_id: int
    to_address: bytes
    amount: int


@dataclass(frozen=True)
class Unlock:
    args: bytes
    from_proxy_contract: bytes
    from_chain_id: int


@dataclass(frozen=True)
class Upgrade:
    script: bytes
    name: str = ""
    version: str = ""
    author: str = ""
    email: str = ""
    description: str = ""


Command = Union[
    BindProxyHash, BindAssetHash, GetAssetBalance, GetProxyHash,
    GetAssetHash, Lock, Unlock, Upgrade,
]

METHODS: Dict[str, Type] = {
    "bindProxyHash": BindProxyHash,
    "bindAssetHash": BindAssetHash,
    "getAssetBalance": GetAssetBalance,
    "getProxyHash": GetProxyHash,
    "getAssetHash": GetAssetHash,
    "lock": Lock,
    "unlock": Unlock,
    "upgrade": Upgrade,
}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _coerce(value: Any, kind: str, name: str) -> Any:
    if kind == "bytes":
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            try:
                return parse_hex(value)
            except ValueError:
                pass
        raise CommandError(ProxyError.INVALID_ARGUMENTS, f"{name} must be bytes")
    if kind == "int":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise CommandError(ProxyError.INVALID_ARGUMENTS, f"{name} must be an integer")
    if kind == "str":
        if isinstance(value, str):
            return value
        raise CommandError(ProxyError.INVALID_ARGUMENTS, f"{name} must be a string")
    raise TypeError(f"unsupported field type {kind}")


def parse_invocation(method: str, args: Sequence[Any]) -> Command:
    """Build a typed command from a method name and positional args."""
    cls = METHODS.get(method)
    if cls is None:
        raise CommandError(ProxyError.UNKNOWN_METHOD, f"unknown method '{method}'")
    params = fields(cls)
    required = [f for f in params if f.default is MISSING]
    if not len(required) <= len(args) <= len(params):
        raise CommandError(
            ProxyError.INVALID_ARGUMENTS,
            f"{method} takes {len(required)}"
            + (f"-{len(params)}" if len(params) != len(required) else "")
            + f" arguments, got {len(args)}",
        )
    values = {
        f.name: _coerce(value, f.type, f.name)
        for f, value in zip(params, args)
    }
    return cls(**values)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

Handler = Callable[[LockProxy, Any, bytes], ProxyReceipt]

_HANDLERS: Dict[Type, Handler] = {
    BindProxyHash: lambda p, c, caller: p.bind_proxy_hash(c.to_chain_id, c.target_proxy_hash),
    BindAssetHash: lambda p, c, caller: p.bind_asset_hash(
        c.from_asset_hash, c.to_chain_id, c.to_asset_hash),
    GetAssetBalance: lambda p, c, caller: ProxyReceipt.ok(p.get_asset_balance(c.asset_hash)),
    GetProxyHash: lambda p, c, caller: ProxyReceipt.ok(p.get_proxy_hash(c.to_chain_id)),
    GetAssetHash: lambda p, c, caller: ProxyReceipt.ok(
        p.get_asset_hash(c.from_asset_hash, c.to_chain_id)),
    Lock: lambda p, c, caller: p.lock(
        c.from_asset_hash, c.from_address, c.to_chain_id, c.to_address, c.amount),
    Unlock: lambda p, c, caller: p.unlock(
        c.args, c.from_proxy_contract, c.from_chain_id, caller),
    Upgrade: lambda p, c, caller: p.upgrade(
        c.script, c.name, c.version, c.author, c.email, c.description),
}

if set(_HANDLERS) != set(METHODS.values()):
    raise RuntimeError("command handler table does not cover every command")


def dispatch(proxy: LockProxy, command: Command) -> ProxyReceipt:
    """Run *command* against *proxy*.

    The caller identity handed to ``unlock`` is the runtime's calling
    script, i.e. the contract that made this invocation.
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"not a proxy command: {command!r}")
    return handler(proxy, command, proxy.runtime.calling_script)


def invoke(proxy: LockProxy, method: str, args: Sequence[Any]) -> ProxyReceipt:
    """Parse and dispatch a raw ``(method, args)`` invocation."""
    try:
        command = parse_invocation(method, args)
    except CommandError as exc:
        logger.warning("Rejected invocation %s: %s", method, exc)
        return ProxyReceipt.fail(exc.error, str(exc))
    return dispatch(proxy, command)
