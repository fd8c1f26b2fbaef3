"""
Error taxonomy for the lock proxy.

Public proxy operations never raise for expected failures; they return a
``ProxyReceipt`` carrying one of the ``ProxyError`` codes below.  The
exceptions here are reserved for the codec (caught and mapped by the
proxy) and for conditions that must never happen.
"""

from __future__ import annotations

from enum import Enum


class LockProxyError(Exception):
    """Base class for all lockproxy exceptions."""


class CodecError(LockProxyError):
    """Raised when a value cannot be encoded or a buffer cannot be decoded."""


class InvariantViolation(LockProxyError):
    """Raised when custody accounting can no longer be trusted."""


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    BINDING = "binding"
    AUTHORIZATION = "authorization"
    COLLABORATOR = "collaborator"
    DECODE = "decode"
    RUNTIME = "runtime"


class ProxyError(str, Enum):
    # input validation
    INVALID_ASSET_HASH = "InvalidAssetHash"
    INVALID_FROM_ADDRESS = "InvalidFromAddress"
    INVALID_TO_ADDRESS = "InvalidToAddress"
    EMPTY_TO_ADDRESS = "EmptyToAddress"
    INVALID_PROXY_HASH = "InvalidProxyHash"
    NEGATIVE_AMOUNT = "NegativeAmount"
    AMOUNT_OUT_OF_RANGE = "AmountOutOfRange"
    NEGATIVE_CHAIN_ID = "NegativeChainId"
    INVALID_ARGUMENTS = "InvalidArguments"
    # bindings
    UNBOUND_ASSET = "UnboundAsset"
    UNBOUND_PROXY = "UnboundProxy"
    UNKNOWN_LEDGER = "UnknownLedger"
    # authorization
    UNAUTHORIZED = "Unauthorized"
    UNTRUSTED_CALLER = "UntrustedCaller"
    UNTRUSTED_SOURCE_PROXY = "UntrustedSourceProxy"
    # collaborators
    LEDGER_TRANSFER_FAILED = "LedgerTransferFailed"
    CROSS_CHAIN_FAILED = "CrossChainFailed"
    # decoding
    MALFORMED_PAYLOAD = "MalformedPayload"
    # runtime
    REENTRANT_CALL = "ReentrantCall"
    UNKNOWN_METHOD = "UnknownMethod"

    @property
    def kind(self) -> ErrorKind:
        return _KINDS[self]


_KINDS = {
    ProxyError.INVALID_ASSET_HASH: ErrorKind.VALIDATION,
    ProxyError.INVALID_FROM_ADDRESS: ErrorKind.VALIDATION,
    ProxyError.INVALID_TO_ADDRESS: ErrorKind.VALIDATION,
    ProxyError.EMPTY_TO_ADDRESS: ErrorKind.VALIDATION,
    ProxyError.INVALID_PROXY_HASH: ErrorKind.VALIDATION,
    ProxyError.NEGATIVE_AMOUNT: ErrorKind.VALIDATION,
    ProxyError.AMOUNT_OUT_OF_RANGE: ErrorKind.VALIDATION,
    ProxyError.NEGATIVE_CHAIN_ID: ErrorKind.VALIDATION,
    ProxyError.INVALID_ARGUMENTS: ErrorKind.VALIDATION,
    ProxyError.UNBOUND_ASSET: ErrorKind.BINDING,
    ProxyError.UNBOUND_PROXY: ErrorKind.BINDING,
    ProxyError.UNKNOWN_LEDGER: ErrorKind.BINDING,
    ProxyError.UNAUTHORIZED: ErrorKind.AUTHORIZATION,
    ProxyError.UNTRUSTED_CALLER: ErrorKind.AUTHORIZATION,
    ProxyError.UNTRUSTED_SOURCE_PROXY: ErrorKind.AUTHORIZATION,
    ProxyError.LEDGER_TRANSFER_FAILED: ErrorKind.COLLABORATOR,
    ProxyError.CROSS_CHAIN_FAILED: ErrorKind.COLLABORATOR,
    ProxyError.MALFORMED_PAYLOAD: ErrorKind.DECODE,
    ProxyError.REENTRANT_CALL: ErrorKind.RUNTIME,
    ProxyError.UNKNOWN_METHOD: ErrorKind.RUNTIME,
}
