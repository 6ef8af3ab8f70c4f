from __future__ import annotations

import argparse
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from .access import AccessGate
from .config import Settings
from .epoch import seconds_until_next_epoch
from .errors import LotteryError
from .lottery import ShuffleLottery
from .oracle import BlockhashOracle, LocalOracle, seed_from_blockhash
from .project_constants import ORACLE_SLOT_DELAY
from .rpc import RpcClient, load_blockhash_from_feed_file
from .state import load_state, save_state
from .verify import build_audit, verify_audit, write_audit


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


class Session:
    """One CLI invocation: settings, the loaded lottery and its access gate."""

    def __init__(
        self,
        settings: Settings,
        lottery: ShuffleLottery,
        oracle: Union[LocalOracle, BlockhashOracle],
        caller: Optional[str],
    ) -> None:
        self.settings = settings
        self.lottery = lottery
        self.oracle = oracle
        self.caller = caller

    @property
    def gate(self) -> AccessGate:
        return AccessGate(
            self.lottery,
            owner=self.settings.require_owner(),
            oracle_id=self.oracle.oracle_id,
        )

    @property
    def caller_id(self) -> str:
        return self.caller or self.settings.require_owner()


@contextmanager
def open_session(args: argparse.Namespace, save: bool = False) -> Iterator[Session]:
    settings = Settings.from_env(
        state_file_override=args.state, rpc_url_override=args.rpc_url
    )

    rpc: Optional[RpcClient] = None
    oracle: Union[LocalOracle, BlockhashOracle]
    if args.oracle == "blockhash":
        rpc = RpcClient(settings.require_rpc_url(), timeout_s=args.timeout)
        oracle = BlockhashOracle(rpc, slot_delay=args.slot_delay)
    else:
        oracle = LocalOracle(settings.oracle_id)

    try:
        registry, lifecycle = load_state(settings.state_file)
        lottery = ShuffleLottery(oracle, registry=registry, lifecycle=lifecycle)
        yield Session(settings, lottery, oracle, args.caller)
        if save:
            save_state(settings.state_file, lottery.registry, lottery.lifecycle)
    finally:
        if rpc is not None:
            rpc.close()


def cmd_add(args: argparse.Namespace) -> int:
    with open_session(args, save=True) as s:
        for member in args.members:
            pos = s.gate.add_member(s.caller_id, member)
            print(f"Added {member.strip()} at position {pos}")
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    with open_session(args, save=True) as s:
        for member in args.members:
            s.gate.remove_member(s.caller_id, member)
            print(f"Removed {member}")
    return 0


def cmd_members(args: argparse.Namespace) -> int:
    with open_session(args) as s:
        members = s.lottery.all_members()
        for i, m in enumerate(members):
            print(f"{i + 1:>6}  {m}")
        print(f"Total members: {len(members)}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    with open_session(args) as s:
        lottery = s.lottery
        epoch = lottery.current_epoch()
        pending = lottery.lifecycle.pending
        print("========================================")
        print("🎲 SHUFFLE LOTTERY STATUS")
        print("========================================")
        print(f"Current epoch     : {epoch}")
        print(
            f"Next epoch in     : {seconds_until_next_epoch(time.time(), lottery.epoch_duration):.0f}s"
        )
        print(f"Tracked epoch     : {lottery.lifecycle.epoch}")
        print(f"Members           : {lottery.member_count()}")
        print(f"Randomness state  : {lottery.randomness_state().value}")
        if pending is not None and lottery.randomness_pending():
            print(f"Pending request   : {pending.request_id}")
        print(f"Current seed      : {lottery.current_seed() or '-'}")
    return 0


def cmd_tick(args: argparse.Namespace) -> int:
    with open_session(args, save=True) as s:
        req = s.lottery.check_epoch()
        print(f"Epoch: {s.lottery.lifecycle.epoch}")
        if req is not None:
            print(f"Requested randomness: {req.request_id}")
    return 0


def cmd_request(args: argparse.Namespace) -> int:
    with open_session(args, save=True) as s:
        req = s.gate.force_request_randomness(s.caller_id)
        print(f"Requested randomness for epoch {req.epoch}: {req.request_id}")
    return 0


def _fulfillment_seed(args: argparse.Namespace, s: Session) -> int:
    if args.seed is not None:
        return args.seed
    if args.from_rpc:
        if not isinstance(s.oracle, BlockhashOracle):
            raise SystemExit("--from-rpc needs --oracle blockhash")
        return s.oracle.resolve(args.request_id)

    slot_hint: Optional[int] = None
    if args.request_id.startswith("slot:"):
        slot_hint = BlockhashOracle.target_slot(args.request_id)
    return seed_from_blockhash(load_blockhash_from_feed_file(args.block_feed_file, slot_hint))


def cmd_fulfill(args: argparse.Namespace) -> int:
    with open_session(args, save=True) as s:
        seed = _fulfillment_seed(args, s)
        epoch = s.gate.fulfill_randomness(s.oracle.oracle_id, args.request_id, seed)
        print(f"Seed stored for epoch {epoch}")
    return 0


def cmd_set_seed(args: argparse.Namespace) -> int:
    with open_session(args, save=True) as s:
        epoch = s.gate.set_seed(s.caller_id, args.seed, args.epoch)
        print(f"Seed overridden for epoch {epoch}")
    return 0


def cmd_winners(args: argparse.Namespace) -> int:
    with open_session(args) as s:
        lottery = s.lottery
        epoch = lottery.current_epoch() if args.epoch is None else args.epoch
        winners = lottery.winners(epoch)

        print("========================================")
        print(f"🏆 WINNERS FOR EPOCH {epoch}")
        print("========================================")
        print(f"Seed          : {lottery.seed_for(epoch) or '-'}")
        print(f"Members       : {lottery.member_count()}")
        for w in winners:
            print(f"  {lottery.position_of(w):>6}  {w}")
        if not winners:
            print("  (no winners)")

        if args.out:
            write_audit(args.out, build_audit(lottery, epoch))
            print("----------------------------------------")
            print(f"🧾 Wrote audit: {args.out}")
    return 0


def cmd_is_winner(args: argparse.Namespace) -> int:
    with open_session(args) as s:
        won = s.lottery.is_winner(args.member, args.epoch)
        print("winner" if won else "not a winner")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("✅ AUDIT VERIFIED")
    print(f"Epoch         : {result['epoch']}")
    print(f"Epoch seed    : {result['epoch_seed_hex']}")
    print(f"Members       : {result['member_count']}")
    for w in result["winners"]:
        print(f"Winner        : {w}")
    return 0


def _seed_arg(value: str) -> int:
    # accepts decimal or 0x-prefixed hex
    return int(value, 0)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="shuffle-lottery",
        description="Epoch-based shuffle lottery with verifiable winner selection.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--state", default=None, help="State file (else LOTTERY_STATE_FILE).")
    p.add_argument("--as", dest="caller", default=None, help="Caller identity (else LOTTERY_OWNER).")
    p.add_argument(
        "--oracle",
        choices=("local", "blockhash"),
        default="local",
        help="Randomness source for new requests.",
    )
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")
    p.add_argument(
        "--slot-delay",
        type=int,
        default=ORACLE_SLOT_DELAY,
        help="Slots between a blockhash request and its target slot.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("add", help="Register members (owner only).")
    a.add_argument("members", nargs="+")
    a.set_defaults(func=cmd_add)

    r = sub.add_parser("remove", help="Unregister members (owner only).")
    r.add_argument("members", nargs="+")
    r.set_defaults(func=cmd_remove)

    sub.add_parser("members", help="List members in registry order.").set_defaults(
        func=cmd_members
    )
    sub.add_parser("status", help="Show epoch and randomness state.").set_defaults(
        func=cmd_status
    )
    sub.add_parser(
        "tick", help="Advance to the current epoch, requesting randomness if due."
    ).set_defaults(func=cmd_tick)
    sub.add_parser(
        "request", help="Force a randomness request (owner only)."
    ).set_defaults(func=cmd_request)

    f = sub.add_parser("fulfill", help="Deliver the oracle's answer to a request.")
    f.add_argument("--request-id", required=True)
    src = f.add_mutually_exclusive_group(required=True)
    src.add_argument("--seed", type=_seed_arg, default=None)
    src.add_argument(
        "--from-rpc", action="store_true", help="Resolve a blockhash request via RPC."
    )
    src.add_argument("--block-feed-file", default=None, help="Offline blockhash source.")
    f.set_defaults(func=cmd_fulfill)

    ss = sub.add_parser("set-seed", help="Override the seed of an epoch (owner only).")
    ss.add_argument("--seed", type=_seed_arg, required=True)
    ss.add_argument("--epoch", type=int, default=None, help="Default: current epoch.")
    ss.set_defaults(func=cmd_set_seed)

    w = sub.add_parser("winners", help="List winners, optionally writing an audit JSON.")
    w.add_argument("--epoch", type=int, default=None)
    w.add_argument("--out", default=None, help="Audit output JSON path.")
    w.set_defaults(func=cmd_winners)

    iw = sub.add_parser("is-winner", help="Check a single member.")
    iw.add_argument("member")
    iw.add_argument("--epoch", type=int, default=None)
    iw.set_defaults(func=cmd_is_winner)

    v = sub.add_parser("verify", help="Verify an existing audit JSON deterministically.")
    v.add_argument("--audit", required=True, help="Path to audit JSON.")
    v.set_defaults(func=cmd_verify)

    return p


def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except LotteryError as e:
        raise SystemExit(f"{type(e).__name__}: {e}")
    raise SystemExit(code)
