from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .draw import is_winning_position, select_winners
from .epoch import current_epoch
from .members import MemberRegistry
from .oracle import RandomnessOracle
from .project_constants import EPOCH_DURATION, WINNER_COUNT
from .randomness import RandomnessLifecycle, RandomnessRequest, RandomnessState

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LotteryEvent:
    name: str
    epoch: int
    data: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[LotteryEvent], None]


class ShuffleLottery:
    """
    Owns the member registry and the randomness lifecycle.

    Mutators assume the caller was already authorised (see access.AccessGate).
    Queries never change state: they read the registry as it is now and the
    seed stored for the queried epoch.
    """

    def __init__(
        self,
        oracle: RandomnessOracle,
        registry: Optional[MemberRegistry] = None,
        lifecycle: Optional[RandomnessLifecycle] = None,
        clock: Callable[[], float] = time.time,
        epoch_duration: int = EPOCH_DURATION,
        winner_count: int = WINNER_COUNT,
    ) -> None:
        if winner_count < 1:
            raise ValueError(f"winner_count must be at least 1, got {winner_count}")
        if lifecycle is None:
            lifecycle = RandomnessLifecycle(threshold=winner_count)
        elif lifecycle.threshold != winner_count:
            raise ValueError(
                f"Lifecycle threshold {lifecycle.threshold} does not match winner_count {winner_count}"
            )
        self.oracle = oracle
        self.registry = registry if registry is not None else MemberRegistry()
        self.lifecycle = lifecycle
        self.clock = clock
        self.epoch_duration = epoch_duration
        self.winner_count = winner_count
        self.events: List[LotteryEvent] = []
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------ events

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, name: str, **data: Any) -> LotteryEvent:
        event = LotteryEvent(name=name, epoch=self.lifecycle.epoch, data=data)
        self.events.append(event)
        log.info("%s (epoch %d) %s", name, event.epoch, data)
        for listener in self._listeners:
            listener(event)
        return event

    def _emit_request(self, req: RandomnessRequest) -> None:
        self._emit(
            "RandomnessRequested",
            request_id=req.request_id,
            member_count=req.member_count,
        )

    # --------------------------------------------------------------- mutations

    def check_epoch(self) -> Optional[RandomnessRequest]:
        """Moves the lifecycle to the clock's epoch; may issue a request."""
        now = self.clock()
        epoch = current_epoch(now, self.epoch_duration)
        previous = self.lifecycle.epoch
        if epoch <= previous:
            return None

        try:
            req = self.lifecycle.on_epoch_advance(epoch, self.registry.count(), self.oracle, now)
        finally:
            # The reset stands even when the oracle call fails.
            if self.lifecycle.epoch != previous:
                self._emit("EpochChanged", previous_epoch=previous)
        if req is not None:
            self._emit_request(req)
        return req

    def add_member(self, member: str) -> int:
        # Epoch first: an oracle failure there must leave the registry untouched.
        self.check_epoch()
        pos = self.registry.add(member)
        self._emit("MemberAdded", member=self.registry.member_at(pos - 1), position=pos)
        return pos

    def remove_member(self, member: str) -> None:
        self.check_epoch()
        last = self.registry.count()
        pos = self.registry.remove(member)
        data: Dict[str, Any] = {"member": member.strip(), "position": pos}
        if pos != last:
            data["moved"] = self.registry.member_at(pos - 1)
        self._emit("MemberRemoved", **data)

    def request_randomness(self) -> RandomnessRequest:
        self.check_epoch()
        req = self.lifecycle.request_randomness(
            self.registry.count(), self.oracle, self.clock()
        )
        self._emit_request(req)
        return req

    def fulfill_randomness(self, request_id: str, seed: int) -> int:
        # A pending request from an earlier epoch becomes stale here.
        self.check_epoch()
        epoch = self.lifecycle.fulfill(request_id, seed)
        self._emit("RandomnessFulfilled", request_id=request_id)
        return epoch

    def set_seed(self, seed: int, epoch: Optional[int] = None) -> int:
        self.check_epoch()
        target = self.lifecycle.epoch if epoch is None else epoch
        self.lifecycle.set_seed(target, seed)
        self._emit("SeedOverridden", target_epoch=target)
        return target

    # ----------------------------------------------------------------- queries

    def current_epoch(self) -> int:
        return current_epoch(self.clock(), self.epoch_duration)

    def _resolve_epoch(self, epoch: Optional[int]) -> int:
        return self.current_epoch() if epoch is None else epoch

    def member_count(self) -> int:
        return self.registry.count()

    def all_members(self) -> List[str]:
        return self.registry.all_members()

    def position_of(self, member: str) -> int:
        return self.registry.position_of(member)

    def seed_for(self, epoch: int) -> int:
        return self.lifecycle.seed_for(epoch)

    def current_seed(self) -> int:
        return self.seed_for(self.current_epoch())

    def randomness_state(self) -> RandomnessState:
        epoch = self.current_epoch()
        if self.lifecycle.epoch != epoch:
            # Not yet advanced; whatever was pending belongs to an old epoch.
            if self.lifecycle.seed_for(epoch):
                return RandomnessState.FULFILLED
            return RandomnessState.IDLE
        return self.lifecycle.state

    def randomness_pending(self) -> bool:
        return self.randomness_state() is RandomnessState.REQUESTED

    def is_winner(self, member: str, epoch: Optional[int] = None) -> bool:
        pos = self.registry.position_of(member)
        if pos == 0:
            return False
        e = self._resolve_epoch(epoch)
        return is_winning_position(
            pos - 1,
            self.registry.count(),
            self.lifecycle.seed_for(e),
            e,
            self.winner_count,
        )

    def winners(self, epoch: Optional[int] = None) -> List[str]:
        e = self._resolve_epoch(epoch)
        return select_winners(
            self.registry.all_members(),
            self.lifecycle.seed_for(e),
            e,
            self.winner_count,
        )

    def balance_of(self, member: str, epoch: Optional[int] = None) -> int:
        return 1 if self.is_winner(member, epoch) else 0

    def total_supply(self, epoch: Optional[int] = None) -> int:
        return len(self.winners(epoch))
