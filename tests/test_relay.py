"""
End-to-end tests: two chains, each with a proxy, a ledger and a local
cross-chain manager, connected by a ChainRouter.
"""

from types import SimpleNamespace

import pytest

from lockproxy.codec import TransferInstruction
from lockproxy.ledger import FungibleAsset, LedgerRegistry
from lockproxy.manager import CrossChainMessage, LocalCrossChainManager, MessageStatus
from lockproxy.proxy import LockProxy
from lockproxy.relay import ChainRouter
from lockproxy.runtime import Runtime

CHAIN_A = 1
CHAIN_B = 2

OPERATOR = b"\x0e" * 20
OWNER = b"\x0a" * 20
ALICE = b"\xa1" * 20
BOB = b"\xb0" * 20


def make_chain(chain_id, proxy_address, ccmc_address, asset_hash):
    runtime = Runtime()
    token = FungibleAsset(asset_hash, runtime, owner=OWNER, total_supply=10_000)
    with runtime.signed_by(OWNER):
        token.deploy()
    manager = LocalCrossChainManager(ccmc_address, chain_id, runtime)
    proxy = LockProxy(proxy_address, OPERATOR, manager, runtime, LedgerRegistry([token]))
    return SimpleNamespace(runtime=runtime, token=token, manager=manager, proxy=proxy)


@pytest.fixture
def chains():
    a = make_chain(CHAIN_A, b"\x9a" * 20, b"\xca" * 20, b"\x1a" * 20)
    b = make_chain(CHAIN_B, b"\x9b" * 20, b"\xcb" * 20, b"\x1b" * 20)

    for local, remote, remote_id in ((a, b, CHAIN_B), (b, a, CHAIN_A)):
        with local.runtime.signed_by(OPERATOR):
            local.proxy.bind_proxy_hash(remote_id, remote.proxy.address)
            local.proxy.bind_asset_hash(local.token.asset_hash, remote_id, remote.token.asset_hash)

    # seed: Alice holds asset A, proxy B holds custody of asset B
    with a.runtime.signed_by(OWNER):
        a.token.transfer(OWNER, ALICE, 1000)
    with b.runtime.signed_by(OWNER):
        b.token.transfer(OWNER, b.proxy.address, 5000)

    router = ChainRouter()
    router.register_chain(a.proxy, a.manager)
    router.register_chain(b.proxy, b.manager)
    return SimpleNamespace(a=a, b=b, router=router)


class TestRegistration:
    def test_duplicate_chain(self, chains):
        with pytest.raises(ValueError):
            chains.router.register_chain(chains.a.proxy, chains.a.manager)

    def test_manager_must_match_proxy(self, chains):
        other = LocalCrossChainManager(b"\xdd" * 20, 9, Runtime())
        with pytest.raises(ValueError):
            ChainRouter().register_chain(chains.a.proxy, other)

    def test_proxy_and_manager_must_share_runtime(self, chains):
        a = chains.a
        detached = LocalCrossChainManager(a.manager.address, 9, Runtime())
        with pytest.raises(ValueError, match="runtime"):
            ChainRouter().register_chain(a.proxy, detached)

    def test_info(self, chains):
        assert chains.router.chain_ids == [CHAIN_A, CHAIN_B]
        assert chains.router.get_endpoint(CHAIN_B).proxy is chains.b.proxy
        assert chains.router.get_endpoint(7) is None


class TestEndToEnd:
    def test_lock_on_a_releases_on_b(self, chains):
        a, b = chains.a, chains.b
        with a.runtime.signed_by(ALICE):
            assert a.proxy.lock(a.token.asset_hash, ALICE, CHAIN_B, BOB, 100)

        (result,) = chains.router.relay()
        assert result.delivered, result.reason
        assert result.message.status is MessageStatus.DELIVERED

        assert a.token.balance_of(ALICE) == 900
        assert a.proxy.get_asset_balance(a.token.asset_hash) == 100
        assert b.token.balance_of(BOB) == 100
        assert b.proxy.get_asset_balance(b.token.asset_hash) == 4900
        assert b.proxy.events.filter("UnlockEvent")[0].data["amount"] == 100

        info = chains.router.get_router_info()
        assert info["delivered"] == 1
        assert info["pending"] == {CHAIN_A: 0, CHAIN_B: 0}

    def test_round_trip_back_to_a(self, chains):
        a, b = chains.a, chains.b
        with a.runtime.signed_by(ALICE):
            a.proxy.lock(a.token.asset_hash, ALICE, CHAIN_B, BOB, 100)
        chains.router.relay()

        with b.runtime.signed_by(BOB):
            assert b.proxy.lock(b.token.asset_hash, BOB, CHAIN_A, ALICE, 40)
        (result,) = chains.router.relay()
        assert result.delivered
        assert a.token.balance_of(ALICE) == 940
        assert a.proxy.get_asset_balance(a.token.asset_hash) == 60

    def test_replay_rejected(self, chains):
        a, b = chains.a, chains.b
        with a.runtime.signed_by(ALICE):
            a.proxy.lock(a.token.asset_hash, ALICE, CHAIN_B, BOB, 100)
        msg = a.manager.outbox[0]
        chains.router.relay()

        replay = chains.router.deliver(msg)
        assert not replay.delivered
        assert "replay" in replay.reason
        assert msg.status is MessageStatus.DELIVERED
        assert b.token.balance_of(BOB) == 100

    def test_forged_sender_rejected_by_destination(self, chains):
        b = chains.b
        forged = CrossChainMessage(
            msg_id="f" * 32,
            from_chain_id=CHAIN_A,
            to_chain_id=CHAIN_B,
            from_contract=b"\x66" * 20,
            to_contract=b.proxy.address,
            method="unlock",
            args=TransferInstruction(b.token.asset_hash, BOB, 100).encode(),
        )
        result = chains.router.deliver(forged)
        assert not result.delivered
        assert result.receipt.error.value == "UntrustedSourceProxy"
        assert forged.status is MessageStatus.FAILED
        assert b.token.balance_of(BOB) == 0

    def test_failed_delivery_can_be_retried(self, chains):
        a, b = chains.a, chains.b
        with b.runtime.signed_by(OWNER):
            b.token.pause()
        with a.runtime.signed_by(ALICE):
            a.proxy.lock(a.token.asset_hash, ALICE, CHAIN_B, BOB, 10)
        (first,) = chains.router.relay()
        assert not first.delivered
        assert first.message.status is MessageStatus.FAILED

        with b.runtime.signed_by(OWNER):
            b.token.unpause()
        retry = chains.router.deliver(first.message)
        assert retry.delivered
        assert b.token.balance_of(BOB) == 10

    def test_retry_failed_redelivers_held_messages(self, chains):
        a, b = chains.a, chains.b
        with b.runtime.signed_by(OWNER):
            b.token.pause()
        with a.runtime.signed_by(ALICE):
            a.proxy.lock(a.token.asset_hash, ALICE, CHAIN_B, BOB, 10)
        (first,) = chains.router.relay()
        assert not first.delivered
        assert chains.router.relay() == []
        assert chains.router.get_router_info()["awaiting_retry"] == 1

        assert not chains.router.retry_failed()[0].delivered
        with b.runtime.signed_by(OWNER):
            b.token.unpause()
        (retry,) = chains.router.retry_failed()
        assert retry.delivered
        assert b.token.balance_of(BOB) == 10
        assert chains.router.get_router_info()["awaiting_retry"] == 0
        assert chains.router.retry_failed() == []

    def test_replayed_message_not_held_for_retry(self, chains):
        a = chains.a
        with a.runtime.signed_by(ALICE):
            a.proxy.lock(a.token.asset_hash, ALICE, CHAIN_B, BOB, 5)
        (done,) = chains.router.relay()
        copy = CrossChainMessage.from_dict(done.message.to_dict())
        copy.status = MessageStatus.PENDING
        assert not chains.router.deliver(copy).delivered
        assert chains.router.get_router_info()["awaiting_retry"] == 0

    def test_unknown_destination(self, chains):
        msg = CrossChainMessage(msg_id="1" * 32, to_chain_id=42, to_contract=b"\x01")
        result = chains.router.deliver(msg)
        assert not result.delivered
        assert "42" in result.reason

    def test_wrong_destination_contract(self, chains):
        msg = CrossChainMessage(msg_id="2" * 32, to_chain_id=CHAIN_B, to_contract=b"\x01" * 20)
        assert not chains.router.deliver(msg).delivered


class TestManager:
    def test_rejects_own_chain_and_empty_target(self, chains):
        m = chains.a.manager
        assert m.cross_chain(CHAIN_A, b"\x01", "unlock", b"") is False
        assert m.cross_chain(-1, b"\x01", "unlock", b"") is False
        assert m.cross_chain(CHAIN_B, b"", "unlock", b"") is False
        assert m.cross_chain(CHAIN_B, b"\x01", "", b"") is False
        assert m.outbox == []

    def test_message_log_and_serialization(self, chains):
        a = chains.a
        with a.runtime.signed_by(ALICE):
            a.proxy.lock(a.token.asset_hash, ALICE, CHAIN_B, BOB, 7)
        msg = a.manager.outbox[0]
        assert a.manager.find(msg.msg_id) is msg
        assert a.manager.get_message_log()[0]["method"] == "unlock"

        restored = CrossChainMessage.from_dict(msg.to_dict())
        assert restored.args == msg.args
        assert restored.compute_hash() == msg.compute_hash()
        assert restored.status is MessageStatus.PENDING
