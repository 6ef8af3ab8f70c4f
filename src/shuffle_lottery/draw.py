from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence

from .project_constants import (
    DOMAIN_EPOCH_SEED,
    DOMAIN_SHUFFLE_DRAW,
    WINNER_COUNT,
)


@dataclass(frozen=True)
class DrawResult:
    epoch: int
    seed: int
    epoch_seed_hex: str
    member_count: int
    winning_positions: List[int]  # 0-based, in draw order
    winners: List[str]  # registry order


def u256(value: int) -> bytes:
    return value.to_bytes(32, "big")


def derive_epoch_seed(seed: int, epoch: int) -> bytes:
    """Bind the raw oracle seed to one epoch."""
    return hashlib.sha256(DOMAIN_EPOCH_SEED + u256(seed) + u256(epoch)).digest()


def draw_offset(epoch_seed: bytes, i: int, span: int) -> int:
    digest = hashlib.sha256(DOMAIN_SHUFFLE_DRAW + epoch_seed + u256(i)).digest()
    return int.from_bytes(digest, "big") % span


def lottery_is_live(member_count: int, k: int = WINNER_COUNT) -> bool:
    # Pools of K or fewer members have no winners at all.
    return k >= 1 and member_count > k


def iter_shuffle(
    member_count: int, seed: int, epoch: int, k: int = WINNER_COUNT
) -> Iterator[int]:
    """
    Yields the K winning positions of a partial Fisher-Yates shuffle over
    [0, member_count), in draw order.

    Only displaced slots are tracked, so memory and time are O(K)
    regardless of the pool size.
    """
    if seed == 0 or not lottery_is_live(member_count, k):
        return

    epoch_seed = derive_epoch_seed(seed, epoch)
    displaced: Dict[int, int] = {}
    for i in range(k):
        j = i + draw_offset(epoch_seed, i, member_count - i)
        at_i = displaced.get(i, i)
        at_j = displaced.get(j, j)
        displaced[i] = at_j
        displaced[j] = at_i
        yield at_j


def winning_positions(
    member_count: int, seed: int, epoch: int, k: int = WINNER_COUNT
) -> List[int]:
    return list(iter_shuffle(member_count, seed, epoch, k))


def is_winning_position(
    position: int, member_count: int, seed: int, epoch: int, k: int = WINNER_COUNT
) -> bool:
    if position < 0 or position >= member_count:
        return False
    return any(p == position for p in iter_shuffle(member_count, seed, epoch, k))


def select_winners(
    members: Sequence[str], seed: int, epoch: int, k: int = WINNER_COUNT
) -> List[str]:
    positions = set(iter_shuffle(len(members), seed, epoch, k))
    out: List[str] = []
    for idx, member in enumerate(members):
        if len(out) == len(positions):
            break
        if idx in positions:
            out.append(member)
    return out


def run_draw(
    members: Sequence[str], seed: int, epoch: int, k: int = WINNER_COUNT
) -> DrawResult:
    positions = winning_positions(len(members), seed, epoch, k)
    return DrawResult(
        epoch=epoch,
        seed=seed,
        epoch_seed_hex=derive_epoch_seed(seed, epoch).hex() if seed else "",
        member_count=len(members),
        winning_positions=positions,
        winners=select_winners(members, seed, epoch, k),
    )
