from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, Protocol

from .draw import u256
from .project_constants import (
    DOMAIN_BLOCKHASH_SEED,
    DOMAIN_REQUEST_ID,
    ORACLE_SLOT_DELAY,
)
from .rpc import RpcClient

log = logging.getLogger(__name__)


class RandomnessOracle(Protocol):
    """
    Outbound half of the request/fulfill exchange. The matching
    fulfillment arrives later through ShuffleLottery.fulfill_randomness.
    """

    oracle_id: str

    def request(self, params: Dict[str, Any]) -> str:
        """Issue a request and return its correlation id."""
        ...


class LocalOracle:
    """
    In-process oracle. Ids are derived from (oracle id, epoch, request index)
    so they are unique per lottery and reproducible across restarts; the
    seed itself is supplied by whoever answers the request. Outstanding
    requests are tracked by the lifecycle, not here.
    """

    def __init__(self, oracle_id: str = "local") -> None:
        self.oracle_id = oracle_id

    def request_id(self, epoch: int, request_index: int) -> str:
        return hashlib.sha256(
            DOMAIN_REQUEST_ID
            + self.oracle_id.encode("utf-8")
            + u256(epoch)
            + u256(request_index)
        ).hexdigest()

    def request(self, params: Dict[str, Any]) -> str:
        return self.request_id(int(params["epoch"]), int(params.get("request_index", 0)))


def seed_from_blockhash(blockhash: str) -> int:
    digest = hashlib.sha256(DOMAIN_BLOCKHASH_SEED + blockhash.encode("utf-8")).digest()
    return int.from_bytes(digest, "big") or 1


class BlockhashOracle:
    """
    Uses the blockhash of a future finalized slot as the seed.

    A request commits to slot `current + slot_delay`; the id carries that
    slot, so the request can be resolved by anyone once the slot is final.
    """

    def __init__(
        self,
        rpc: RpcClient,
        slot_delay: int = ORACLE_SLOT_DELAY,
        oracle_id: str = "blockhash",
    ) -> None:
        if slot_delay <= 0:
            raise ValueError(f"slot_delay must be positive, got {slot_delay}")
        self.rpc = rpc
        self.slot_delay = slot_delay
        self.oracle_id = oracle_id

    def request(self, params: Dict[str, Any]) -> str:
        slot = self.rpc.get_slot() + self.slot_delay
        request_id = f"slot:{slot}:{int(params['epoch'])}:{int(params.get('request_index', 0))}"
        log.info("Committed to target slot %d (%s)", slot, request_id)
        return request_id

    @staticmethod
    def target_slot(request_id: str) -> int:
        parts = request_id.split(":")
        if len(parts) != 4 or parts[0] != "slot":
            raise ValueError(f"Not a blockhash oracle request id: {request_id!r}")
        return int(parts[1])

    def resolve(self, request_id: str) -> int:
        slot = self.target_slot(request_id)
        blockhash = self.rpc.get_blockhash_for_slot(slot)
        log.debug("Slot %d blockhash %s", slot, blockhash)
        return seed_from_blockhash(blockhash)
