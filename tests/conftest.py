from __future__ import annotations

import hashlib
from typing import Callable, List

import base58
import pytest

from shuffle_lottery.lottery import ShuffleLottery
from shuffle_lottery.oracle import LocalOracle
from shuffle_lottery.project_constants import EPOCH_DURATION


def member_address(label: str) -> str:
    return base58.b58encode(hashlib.sha256(label.encode("utf-8")).digest()).decode("ascii")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance_epochs(self, n: int = 1, duration: int = EPOCH_DURATION) -> None:
        self.now += n * duration


@pytest.fixture
def make_members() -> Callable[[int], List[str]]:
    def _make(n: int, prefix: str = "member") -> List[str]:
        return [member_address(f"{prefix}-{i}") for i in range(n)]

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def oracle() -> LocalOracle:
    return LocalOracle()


@pytest.fixture
def lottery(oracle: LocalOracle, clock: FakeClock) -> ShuffleLottery:
    return ShuffleLottery(oracle, clock=clock)
