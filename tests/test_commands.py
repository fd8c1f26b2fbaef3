"""
Tests for typed command parsing and dispatch.
"""

import pytest

from lockproxy.codec import TransferInstruction
from lockproxy.commands import (
    METHODS, BindAssetHash, BindProxyHash, CommandError, GetAssetBalance, Lock,
    Unlock, Upgrade, dispatch, invoke, parse_invocation,
)
from lockproxy.errors import ProxyError
from lockproxy.ledger import FungibleAsset, LedgerRegistry
from lockproxy.manager import LocalCrossChainManager
from lockproxy.proxy import LockProxy
from lockproxy.runtime import Runtime

ASSET = b"\x11" * 20
REMOTE_ASSET = b"\xbb" * 20
PROXY = b"\x99" * 20
REMOTE_PROXY = b"\xaa" * 20
CCMC = b"\xcc" * 20
OPERATOR = b"\x0e" * 20
OWNER = b"\x0a" * 20
ALICE = b"\xa1" * 20
CAROL = b"\xc0" * 20


@pytest.fixture
def runtime():
    return Runtime()


@pytest.fixture
def proxy(runtime):
    token = FungibleAsset(ASSET, runtime, owner=OWNER, total_supply=1000)
    with runtime.signed_by(OWNER):
        token.deploy()
        token.transfer(OWNER, PROXY, 300)
    manager = LocalCrossChainManager(CCMC, 1, runtime)
    return LockProxy(PROXY, OPERATOR, manager, runtime, LedgerRegistry([token]))


class TestParseInvocation:
    def test_every_method_has_a_command(self):
        assert set(METHODS) == {
            "bindProxyHash", "bindAssetHash", "getAssetBalance", "getProxyHash",
            "getAssetHash", "lock", "unlock", "upgrade",
        }

    def test_typed_fields(self):
        cmd = parse_invocation("lock", [ASSET, ALICE, 2, b"\x01", 10])
        assert cmd == Lock(ASSET, ALICE, 2, b"\x01", 10)

    def test_hex_strings_accepted_for_bytes(self):
        cmd = parse_invocation("bindProxyHash", [2, "0x" + REMOTE_PROXY.hex()])
        assert cmd == BindProxyHash(2, REMOTE_PROXY)

    def test_optional_fields(self):
        assert parse_invocation("upgrade", [b"code"]) == Upgrade(b"code")
        cmd = parse_invocation("upgrade", [b"code", "LockProxy", "2.0"])
        assert cmd.version == "2.0"
        assert cmd.author == ""

    def test_unknown_method(self):
        with pytest.raises(CommandError) as exc:
            parse_invocation("mint", [])
        assert exc.value.error is ProxyError.UNKNOWN_METHOD

    @pytest.mark.parametrize("method, args", [
        ("getAssetBalance", []),
        ("getAssetBalance", [ASSET, ASSET]),
        ("bindAssetHash", [ASSET, 2]),
        ("upgrade", [b"x"] * 7),
    ])
    def test_arity(self, method, args):
        with pytest.raises(CommandError) as exc:
            parse_invocation(method, args)
        assert exc.value.error is ProxyError.INVALID_ARGUMENTS

    @pytest.mark.parametrize("method, args", [
        ("getProxyHash", ["2"]),
        ("getProxyHash", [True]),
        ("getAssetBalance", [12]),
        ("getAssetBalance", ["not hex"]),
        ("upgrade", [b"code", b"name"]),
    ])
    def test_types(self, method, args):
        with pytest.raises(CommandError):
            parse_invocation(method, args)


class TestDispatch:
    def test_admin_and_queries(self, proxy, runtime):
        with runtime.signed_by(OPERATOR):
            assert dispatch(proxy, BindProxyHash(2, REMOTE_PROXY))
            assert dispatch(proxy, BindAssetHash(ASSET, 2, REMOTE_ASSET))
        assert invoke(proxy, "getProxyHash", [2]).return_value == REMOTE_PROXY
        assert invoke(proxy, "getAssetHash", [ASSET, 2]).return_value == REMOTE_ASSET
        assert dispatch(proxy, GetAssetBalance(ASSET)).return_value == 300

    def test_unlock_caller_is_calling_script(self, proxy, runtime):
        with runtime.signed_by(OPERATOR):
            proxy.bind_proxy_hash(2, REMOTE_PROXY)
        args = TransferInstruction(ASSET, CAROL, 25).encode()

        rejected = invoke(proxy, "unlock", [args, REMOTE_PROXY, 2])
        assert rejected.error is ProxyError.UNTRUSTED_CALLER

        with runtime.invoke(CCMC):
            assert dispatch(proxy, Unlock(args, REMOTE_PROXY, 2))
        assert proxy.get_asset_balance(ASSET) == 275

    def test_invoke_maps_parse_errors_to_receipts(self, proxy):
        receipt = invoke(proxy, "burn", [])
        assert not receipt
        assert receipt.error is ProxyError.UNKNOWN_METHOD
        assert invoke(proxy, "lock", [ASSET]).error is ProxyError.INVALID_ARGUMENTS

    def test_dispatch_rejects_foreign_objects(self, proxy):
        with pytest.raises(TypeError):
            dispatch(proxy, object())
