from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Tuple

from .members import MemberRegistry
from .project_constants import MIN_MEMBERS_EXCLUSIVE
from .randomness import RandomnessLifecycle, RandomnessRequest, RandomnessState, check_seed

log = logging.getLogger(__name__)

STATE_VERSION = 1


def state_to_dict(registry: MemberRegistry, lifecycle: RandomnessLifecycle) -> Dict[str, Any]:
    pending = lifecycle.pending
    return {
        "version": STATE_VERSION,
        "members": registry.all_members(),
        "epoch": lifecycle.epoch,
        "state": lifecycle.state.value,
        "request_count": lifecycle.request_count,
        "pending": None
        if pending is None
        else {
            "request_id": pending.request_id,
            "epoch": pending.epoch,
            "member_count": pending.member_count,
            "requested_at": pending.requested_at,
        },
        # big ints; store as strings for safety
        "seeds": {str(e): str(s) for e, s in sorted(lifecycle.seeds.items())},
    }


def state_from_dict(
    data: Dict[str, Any], threshold: int = MIN_MEMBERS_EXCLUSIVE
) -> Tuple[MemberRegistry, RandomnessLifecycle]:
    version = int(data.get("version", 0))
    if version != STATE_VERSION:
        raise RuntimeError(f"Unsupported state version {version} (expected {STATE_VERSION})")

    registry = MemberRegistry.from_members(data.get("members", []))
    registry.check_invariants()

    lifecycle = RandomnessLifecycle(threshold=threshold, epoch=int(data["epoch"]))
    lifecycle.state = RandomnessState(data["state"])
    lifecycle.request_count = int(data.get("request_count", 0))
    lifecycle.seeds = {int(e): check_seed(int(s)) for e, s in data.get("seeds", {}).items()}

    p = data.get("pending")
    if p is not None:
        lifecycle.pending = RandomnessRequest(
            request_id=str(p["request_id"]),
            epoch=int(p["epoch"]),
            member_count=int(p["member_count"]),
            requested_at=float(p["requested_at"]),
        )
    if (lifecycle.state is RandomnessState.REQUESTED) != (lifecycle.pending is not None):
        raise RuntimeError(
            f"Inconsistent state file: state={lifecycle.state.value} pending={p is not None}"
        )
    return registry, lifecycle


def load_state(
    path: str, threshold: int = MIN_MEMBERS_EXCLUSIVE
) -> Tuple[MemberRegistry, RandomnessLifecycle]:
    if not os.path.exists(path):
        log.info("No state file at %s; starting a fresh lottery", path)
        return MemberRegistry(), RandomnessLifecycle(threshold=threshold)

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"State file {path} is not valid JSON: {e}")
    return state_from_dict(data, threshold=threshold)


def save_state(path: str, registry: MemberRegistry, lifecycle: RandomnessLifecycle) -> None:
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(state_to_dict(registry, lifecycle), f, indent=2)
    os.replace(tmp, path)
    log.debug("Saved state to %s", path)
