from __future__ import annotations

from .project_constants import EPOCH_DURATION


def _check_duration(duration: int) -> None:
    if duration <= 0:
        raise ValueError(f"Epoch duration must be positive, got {duration}")


def current_epoch(now: float, duration: int = EPOCH_DURATION) -> int:
    """Epoch number for a unix timestamp: floor(now / duration)."""
    _check_duration(duration)
    if now < 0:
        raise ValueError(f"Timestamp before the epoch origin: {now}")
    return int(now) // duration


def epoch_start(epoch: int, duration: int = EPOCH_DURATION) -> int:
    _check_duration(duration)
    return epoch * duration


def epoch_end(epoch: int, duration: int = EPOCH_DURATION) -> int:
    # exclusive
    return epoch_start(epoch + 1, duration)


def seconds_until_next_epoch(now: float, duration: int = EPOCH_DURATION) -> float:
    return epoch_end(current_epoch(now, duration), duration) - now
