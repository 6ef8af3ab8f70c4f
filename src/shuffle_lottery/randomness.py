from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

from .errors import (
    AlreadyRequested,
    InsufficientMembers,
    InvalidSeed,
    StaleOrMismatchedFulfillment,
)
from .project_constants import MAX_SEED, MIN_MEMBERS_EXCLUSIVE

if TYPE_CHECKING:
    from .oracle import RandomnessOracle

log = logging.getLogger(__name__)


class RandomnessState(str, Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    FULFILLED = "fulfilled"


@dataclass(frozen=True)
class RandomnessRequest:
    request_id: str
    epoch: int
    member_count: int
    requested_at: float


def check_seed(seed: int) -> int:
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise InvalidSeed(f"Seed must be an integer, got {type(seed).__name__}")
    if seed <= 0 or seed > MAX_SEED:
        raise InvalidSeed(f"Seed out of range [1, 2**256): {seed}")
    return seed


class RandomnessLifecycle:
    """
    Tracks the seed request for the current epoch and keeps every received
    seed keyed by epoch.

    idle -> requested -> fulfilled, and back to idle when a later epoch
    starts. An epoch advance drops any outstanding request; its id can no
    longer fulfill anything.
    """

    def __init__(self, threshold: int = MIN_MEMBERS_EXCLUSIVE, epoch: int = -1) -> None:
        self.threshold = threshold
        self.epoch = epoch
        self.state = RandomnessState.IDLE
        self.pending: Optional[RandomnessRequest] = None
        self.seeds: Dict[int, int] = {}
        # Requests issued over the lifetime of the lottery; keeps ids unique.
        self.request_count = 0

    def on_epoch_advance(
        self,
        new_epoch: int,
        member_count: int,
        oracle: "RandomnessOracle",
        now: float,
    ) -> Optional[RandomnessRequest]:
        if new_epoch <= self.epoch:
            return None

        if self.pending is not None:
            log.info(
                "Dropping unfulfilled request %s from epoch %d",
                self.pending.request_id,
                self.pending.epoch,
            )
        self.epoch = new_epoch
        self.pending = None
        self.state = (
            RandomnessState.FULFILLED if new_epoch in self.seeds else RandomnessState.IDLE
        )

        if self.state is RandomnessState.IDLE and member_count > self.threshold:
            return self.request_randomness(member_count, oracle, now)
        return None

    def request_randomness(
        self,
        member_count: int,
        oracle: "RandomnessOracle",
        now: float,
    ) -> RandomnessRequest:
        if self.state is RandomnessState.REQUESTED and self.pending is not None:
            raise AlreadyRequested(
                f"Randomness already requested for epoch {self.epoch}: {self.pending.request_id}"
            )
        if member_count <= self.threshold:
            raise InsufficientMembers(
                f"Need more than {self.threshold} members to draw, have {member_count}"
            )

        request_id = oracle.request(
            {
                "epoch": self.epoch,
                "member_count": member_count,
                "request_index": self.request_count,
                "num_words": 1,
            }
        )
        self.request_count += 1
        req = RandomnessRequest(
            request_id=request_id,
            epoch=self.epoch,
            member_count=member_count,
            requested_at=now,
        )
        self.pending = req
        self.state = RandomnessState.REQUESTED
        log.info("Requested randomness for epoch %d: %s", self.epoch, request_id)
        return req

    def fulfill(self, request_id: str, seed: int) -> int:
        if self.state is not RandomnessState.REQUESTED or self.pending is None:
            raise StaleOrMismatchedFulfillment(
                f"No outstanding request for epoch {self.epoch}; got {request_id}"
            )
        if request_id != self.pending.request_id:
            raise StaleOrMismatchedFulfillment(
                f"Request id mismatch: outstanding={self.pending.request_id} got={request_id}"
            )
        check_seed(seed)

        self.seeds[self.epoch] = seed
        self.pending = None
        self.state = RandomnessState.FULFILLED
        log.info("Randomness fulfilled for epoch %d (%s)", self.epoch, request_id)
        return self.epoch

    def set_seed(self, epoch: int, seed: int) -> None:
        """Administrative override, used for testing and replays."""
        check_seed(seed)
        if epoch < 0:
            raise ValueError(f"Epoch must be non-negative, got {epoch}")

        self.seeds[epoch] = seed
        if epoch == self.epoch:
            self.pending = None
            self.state = RandomnessState.FULFILLED

    def seed_for(self, epoch: int) -> int:
        return self.seeds.get(epoch, 0)

    def current_seed(self) -> int:
        return self.seed_for(self.epoch)

    def randomness_pending(self) -> bool:
        return self.state is RandomnessState.REQUESTED
