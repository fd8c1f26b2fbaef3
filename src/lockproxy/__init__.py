"""
Lock Proxy

Logic core of a cross-chain asset bridge: lock a fungible asset into
custody on this chain and instruct the paired proxy on another chain to
release the matching asset, plus the authenticated inbound unlock path.

Features:
- Wire codec for transfer instructions (varint / varbytes / uint256)
- Persistent, operator-gated proxy and asset bindings
- Lock / unlock with fail-fast validation and compensating refunds
- Typed command dispatch for host invocations
- Reference NEP-5 style ledger and in-process cross-chain relay
"""

from .codec import (
    Sink, Source, TransferInstruction,
    encode_transfer_instruction, decode_transfer_instruction,
    encode_varint, decode_varint, encode_var_bytes, decode_var_bytes,
    encode_uint256, decode_uint256,
)
from .config import ProxyConfig
from .errors import CodecError, ErrorKind, InvariantViolation, LockProxyError, ProxyError
from .events import EventLog, ProxyEvent
from .ledger import AssetLedger, FungibleAsset, LedgerRegistry
from .manager import CrossChainManager, CrossChainMessage, LocalCrossChainManager, MessageStatus
from .proxy import LockProxy, ProxyReceipt
from .registry import BindingRegistry
from .relay import ChainRouter
from .runtime import Runtime
from .storage import JournaledStorage, MemoryBackend, SQLiteBackend, StorageBackend, get_storage_backend

__version__ = "0.1.0"

__all__ = [
    "Sink", "Source", "TransferInstruction",
    "encode_transfer_instruction", "decode_transfer_instruction",
    "encode_varint", "decode_varint", "encode_var_bytes", "decode_var_bytes",
    "encode_uint256", "decode_uint256",
    "ProxyConfig",
    "CodecError", "ErrorKind", "InvariantViolation", "LockProxyError", "ProxyError",
    "EventLog", "ProxyEvent",
    "AssetLedger", "FungibleAsset", "LedgerRegistry",
    "CrossChainManager", "CrossChainMessage", "LocalCrossChainManager", "MessageStatus",
    "LockProxy", "ProxyReceipt",
    "BindingRegistry",
    "ChainRouter",
    "Runtime",
    "JournaledStorage", "MemoryBackend", "SQLiteBackend", "StorageBackend",
    "get_storage_backend",
]
