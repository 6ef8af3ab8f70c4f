from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from .draw import run_draw
from .lottery import ShuffleLottery
from .project_constants import DOMAIN_EPOCH_SEED, DOMAIN_SHUFFLE_DRAW, HASH_FN

TOOL_NAME = "shuffle-lottery"
TOOL_VERSION = "1.0.0"


def build_audit(lottery: ShuffleLottery, epoch: int) -> Dict[str, Any]:
    """Everything needed to re-run the draw for `epoch` without the lottery state."""
    members = lottery.all_members()
    seed = lottery.seed_for(epoch)
    result = run_draw(members, seed, epoch, lottery.winner_count)

    return {
        "metadata": {
            "tool": TOOL_NAME,
            "version": TOOL_VERSION,
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "hash_fn": HASH_FN,
            "domain_epoch_seed": DOMAIN_EPOCH_SEED.decode("ascii"),
            "domain_shuffle_draw": DOMAIN_SHUFFLE_DRAW.decode("ascii"),
            "epoch": epoch,
            "epoch_duration": lottery.epoch_duration,
            "seed": str(seed),
            "epoch_seed_hex": result.epoch_seed_hex,
            "winner_count": lottery.winner_count,
            "member_count": result.member_count,
        },
        "winning_positions": result.winning_positions,
        "winners": result.winners,
        # Registry order matters: positions index into this list.
        "all_members": members,
    }


def write_audit(path: str, audit: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(audit, f, indent=2)


def verify_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)

    meta = audit["metadata"]
    if meta.get("domain_epoch_seed") != DOMAIN_EPOCH_SEED.decode("ascii") or meta.get(
        "domain_shuffle_draw"
    ) != DOMAIN_SHUFFLE_DRAW.decode("ascii"):
        raise RuntimeError("Audit was produced with different domain tags; cannot re-run.")

    epoch = int(meta["epoch"])
    seed = int(meta["seed"])
    k = int(meta["winner_count"])
    members = list(audit["all_members"])

    if len(members) != int(meta["member_count"]):
        raise RuntimeError(
            f"Member count mismatch: audit={meta['member_count']} recomputed={len(members)}"
        )

    result = run_draw(members, seed, epoch, k)
    if result.epoch_seed_hex != meta["epoch_seed_hex"]:
        raise RuntimeError(
            f"Epoch seed mismatch: audit={meta['epoch_seed_hex']} recomputed={result.epoch_seed_hex}"
        )
    if result.winning_positions != [int(p) for p in audit["winning_positions"]]:
        raise RuntimeError(
            f"Winning positions mismatch: audit={audit['winning_positions']} "
            f"recomputed={result.winning_positions}"
        )
    if result.winners != audit["winners"]:
        raise RuntimeError(
            f"Winner mismatch: audit={audit['winners']} recomputed={result.winners}"
        )

    return {
        "ok": True,
        "epoch": epoch,
        "epoch_seed_hex": result.epoch_seed_hex,
        "winners": result.winners,
        "member_count": result.member_count,
    }
