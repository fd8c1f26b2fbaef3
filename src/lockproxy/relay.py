"""
In-process message delivery between lock proxies on different chains.

``ChainRouter`` plays the role of the relayer network for local
deployments and tests.  Each registered chain contributes a proxy, its
``LocalCrossChainManager`` and its ``Runtime``.  ``relay()`` drains every
manager's outbox and delivers each message to the destination proxy by
invoking ``unlock`` with the destination manager as the calling script,
which is exactly the identity the proxy authenticates.

Integration
-----------
::

    router = ChainRouter()
    router.register_chain(proxy_a, manager_a)
    router.register_chain(proxy_b, manager_b)

    proxy_a.lock(asset, alice, manager_b.chain_id, bob, 100)
    results = router.relay()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from .commands import invoke
from .manager import CrossChainMessage, LocalCrossChainManager, MessageStatus
from .proxy import LockProxy, ProxyReceipt

logger = logging.getLogger("lockproxy.relay")


@dataclass
class ChainEndpoint:
    chain_id: int
    proxy: LockProxy
    manager: LocalCrossChainManager


@dataclass
class DeliveryResult:
    message: CrossChainMessage
    delivered: bool
    receipt: Optional[ProxyReceipt] = None
    reason: str = ""


class ChainRouter:
    """Registry of local chains plus delivery of queued messages."""

    def __init__(self):
        self._chains: Dict[int, ChainEndpoint] = {}
        self._processed: Set[str] = set()
        self._failed: Dict[str, CrossChainMessage] = {}
        self._delivery_log: List[DeliveryResult] = []

    # -- Registration ------------------------------------------------------

    def register_chain(self, proxy: LockProxy, manager: LocalCrossChainManager) -> ChainEndpoint:
        chain_id = manager.chain_id
        if chain_id in self._chains:
            raise ValueError(f"Chain {chain_id} already registered")
        if proxy.ccmc_address != manager.address:
            raise ValueError(f"Proxy on chain {chain_id} does not trust this manager")
        if proxy.runtime is not manager.runtime:
            raise ValueError(f"Proxy and manager on chain {chain_id} must share one runtime")
        endpoint = ChainEndpoint(chain_id=chain_id, proxy=proxy, manager=manager)
        self._chains[chain_id] = endpoint
        logger.info("Router: registered chain %d", chain_id)
        return endpoint

    def get_endpoint(self, chain_id: int) -> Optional[ChainEndpoint]:
        return self._chains.get(chain_id)

    @property
    def chain_ids(self) -> List[int]:
        return list(self._chains)

    # -- Delivery ----------------------------------------------------------

    def relay(self) -> List[DeliveryResult]:
        """Deliver every queued message on every registered chain."""
        results: List[DeliveryResult] = []
        for endpoint in list(self._chains.values()):
            for msg in endpoint.manager.pop_outbox():
                results.append(self.deliver(msg))
        return results

    def retry_failed(self) -> List[DeliveryResult]:
        """Redeliver every message whose last delivery attempt failed."""
        return [self.deliver(msg) for msg in list(self._failed.values())]

    def deliver(self, msg: CrossChainMessage) -> DeliveryResult:
        """Deliver a single message to its destination proxy."""
        if msg.msg_id in self._processed:
            return self._fail(msg, f"Message {msg.msg_id} already processed (replay)")
        dest = self._chains.get(msg.to_chain_id)
        if dest is None:
            return self._fail(msg, f"No chain registered with id {msg.to_chain_id}")
        if msg.to_contract != dest.proxy.address:
            return self._fail(
                msg, f"No contract {msg.to_contract.hex()} on chain {msg.to_chain_id}"
            )

        runtime = dest.manager.runtime
        with runtime.invoke(dest.manager.address):
            receipt = invoke(
                dest.proxy, msg.method, [msg.args, msg.from_contract, msg.from_chain_id]
            )

        if not receipt:
            return self._fail(msg, receipt.reason, receipt)

        self._processed.add(msg.msg_id)
        self._failed.pop(msg.msg_id, None)
        msg.status = MessageStatus.DELIVERED
        result = DeliveryResult(message=msg, delivered=True, receipt=receipt)
        self._delivery_log.append(result)
        logger.info(
            "Router: delivered msg %s to chain %d (nonce=%d)",
            msg.msg_id[:8], msg.to_chain_id, msg.nonce,
        )
        return result

    def _fail(self, msg: CrossChainMessage, reason: str,
              receipt: Optional[ProxyReceipt] = None) -> DeliveryResult:
        if msg.status != MessageStatus.DELIVERED:
            msg.status = MessageStatus.FAILED
            msg.error = reason
            if msg.msg_id not in self._processed:
                self._failed[msg.msg_id] = msg
        result = DeliveryResult(message=msg, delivered=False, receipt=receipt, reason=reason)
        self._delivery_log.append(result)
        logger.warning("Router: rejected msg %s: %s", msg.msg_id[:8], reason)
        return result

    # -- Info / Audit ------------------------------------------------------

    def get_router_info(self) -> Dict[str, Any]:
        return {
            "chains": self.chain_ids,
            "pending": {
                cid: len(ep.manager.outbox) for cid, ep in self._chains.items()
            },
            "delivered": sum(1 for r in self._delivery_log if r.delivered),
            "failed": sum(1 for r in self._delivery_log if not r.delivered),
            "awaiting_retry": len(self._failed),
        }
