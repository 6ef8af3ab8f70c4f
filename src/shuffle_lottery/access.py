from __future__ import annotations

from typing import Optional

from .errors import Unauthorized
from .lottery import ShuffleLottery
from .randomness import RandomnessRequest


class AccessGate:
    """
    Capability check in front of ShuffleLottery's mutators.

    Membership changes and seed overrides need the owner; fulfillments
    must come from the trusted oracle.
    """

    def __init__(self, lottery: ShuffleLottery, owner: str, oracle_id: str) -> None:
        if not owner:
            raise ValueError("AccessGate needs an owner identity")
        self.lottery = lottery
        self.owner = owner
        self.oracle_id = oracle_id

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{caller!r} is not the lottery owner")

    def add_member(self, caller: str, member: str) -> int:
        self._require_owner(caller)
        return self.lottery.add_member(member)

    def remove_member(self, caller: str, member: str) -> None:
        self._require_owner(caller)
        self.lottery.remove_member(member)

    def force_request_randomness(self, caller: str) -> RandomnessRequest:
        self._require_owner(caller)
        return self.lottery.request_randomness()

    def set_seed(self, caller: str, seed: int, epoch: Optional[int] = None) -> int:
        self._require_owner(caller)
        return self.lottery.set_seed(seed, epoch)

    def fulfill_randomness(self, sender: str, request_id: str, seed: int) -> int:
        if sender != self.oracle_id:
            raise Unauthorized(f"{sender!r} is not the trusted oracle {self.oracle_id!r}")
        return self.lottery.fulfill_randomness(request_id, seed)
