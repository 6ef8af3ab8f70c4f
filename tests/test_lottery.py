from __future__ import annotations

from typing import List

import pytest

from shuffle_lottery.draw import winning_positions
from shuffle_lottery.errors import (
    AlreadyRequested,
    DuplicateMember,
    InsufficientMembers,
    StaleOrMismatchedFulfillment,
)
from shuffle_lottery.lottery import LotteryEvent, ShuffleLottery
from shuffle_lottery.oracle import LocalOracle
from shuffle_lottery.randomness import RandomnessLifecycle, RandomnessState


def add_all(lottery: ShuffleLottery, members: List[str]) -> None:
    for m in members:
        lottery.add_member(m)


def event_names(lottery: ShuffleLottery) -> List[str]:
    return [e.name for e in lottery.events]


def test_seven_members_yield_five_winners(lottery: ShuffleLottery, make_members) -> None:
    members = make_members(7)
    add_all(lottery, members)
    lottery.set_seed(12345)

    winners = lottery.winners()
    assert len(winners) == 5
    assert len(set(winners)) == 5

    flags = {m: lottery.is_winner(m) for m in members}
    assert sum(flags.values()) == 5
    assert {m for m, won in flags.items() if won} == set(winners)
    assert lottery.total_supply() == 5
    assert sum(lottery.balance_of(m) for m in members) == 5


def test_exactly_k_members_have_no_winners(lottery: ShuffleLottery, make_members) -> None:
    members = make_members(5)
    add_all(lottery, members)
    lottery.set_seed(12345)

    assert lottery.current_seed() == 12345
    assert lottery.winners() == []
    assert not any(lottery.is_winner(m) for m in members)
    assert lottery.total_supply() == 0
    with pytest.raises(InsufficientMembers):
        lottery.request_randomness()


def test_same_seed_in_next_epoch_draws_differently(
    lottery: ShuffleLottery, clock, make_members
) -> None:
    add_all(lottery, make_members(8))
    lottery.set_seed(12345)
    epoch = lottery.current_epoch()
    first = lottery.winners()

    clock.advance_epochs()
    lottery.set_seed(12345)
    assert lottery.current_epoch() == epoch + 1
    second = lottery.winners()

    assert len(first) == len(second) == 5
    assert set(first) != set(second)
    assert winning_positions(8, 12345, epoch) != winning_positions(8, 12345, epoch + 1)
    # history stays queryable
    assert lottery.winners(epoch) == first


def test_winners_are_stable_across_queries(lottery: ShuffleLottery, make_members) -> None:
    add_all(lottery, make_members(40))
    lottery.set_seed(987654321)
    first = lottery.winners()
    assert all(lottery.winners() == first for _ in range(5))
    assert all(lottery.is_winner(w) for w in first)


def test_unknown_member_is_never_a_winner(lottery: ShuffleLottery, make_members) -> None:
    add_all(lottery, make_members(10))
    lottery.set_seed(1)
    assert not lottery.is_winner(make_members(11)[10])
    assert lottery.balance_of(make_members(11)[10]) == 0


def test_no_seed_means_no_winners(lottery: ShuffleLottery, make_members) -> None:
    add_all(lottery, make_members(10))
    assert lottery.current_seed() == 0
    assert lottery.winners() == []


def test_winners_depend_only_on_final_order(
    oracle: LocalOracle, clock, make_members
) -> None:
    members = make_members(9)
    extra = make_members(1, prefix="extra")[0]

    a = ShuffleLottery(oracle, clock=clock)
    add_all(a, members)

    b = ShuffleLottery(LocalOracle(), clock=clock)
    add_all(b, members)
    b.add_member(extra)
    b.remove_member(extra)

    assert a.all_members() == b.all_members()
    a.set_seed(4242)
    b.set_seed(4242)
    assert a.winners() == b.winners()


def test_removal_changes_positions_used_for_selection(
    lottery: ShuffleLottery, make_members
) -> None:
    members = make_members(12)
    add_all(lottery, members)
    lottery.remove_member(members[0])

    assert lottery.position_of(members[11]) == 1
    lottery.set_seed(31337)
    positions = winning_positions(11, 31337, lottery.current_epoch())
    assert sorted(lottery.position_of(w) - 1 for w in lottery.winners()) == sorted(positions)


def test_epoch_advance_requests_and_fulfills(
    lottery: ShuffleLottery, oracle: LocalOracle, clock, make_members
) -> None:
    add_all(lottery, make_members(6))
    assert lottery.randomness_state() is RandomnessState.IDLE

    clock.advance_epochs()
    req = lottery.check_epoch()
    assert req is not None
    assert req.request_id == oracle.request_id(lottery.current_epoch(), 0)
    assert lottery.randomness_pending()
    assert event_names(lottery)[-2:] == ["EpochChanged", "RandomnessRequested"]

    assert lottery.check_epoch() is None

    epoch = lottery.fulfill_randomness(req.request_id, 2024)
    assert epoch == lottery.current_epoch()
    assert lottery.seed_for(epoch) == 2024
    assert lottery.randomness_state() is RandomnessState.FULFILLED
    assert len(lottery.winners()) == 5


def test_stale_fulfillment_after_epoch_change_is_rejected(
    lottery: ShuffleLottery, clock, make_members
) -> None:
    add_all(lottery, make_members(6))
    old = lottery.request_randomness()
    epoch = lottery.current_epoch()

    clock.advance_epochs()
    assert not lottery.randomness_pending()
    with pytest.raises(StaleOrMismatchedFulfillment):
        lottery.fulfill_randomness(old.request_id, 12345)

    assert lottery.seed_for(epoch) == 0
    assert lottery.seed_for(epoch + 1) == 0
    # the epoch check inside fulfill issued a fresh request
    assert lottery.randomness_pending()
    assert lottery.lifecycle.pending.request_id != old.request_id


def test_force_request_while_pending(lottery: ShuffleLottery, make_members) -> None:
    add_all(lottery, make_members(6))
    lottery.request_randomness()
    with pytest.raises(AlreadyRequested):
        lottery.request_randomness()


def test_randomness_pending_ignores_requests_from_past_epochs(
    lottery: ShuffleLottery, clock, make_members
) -> None:
    add_all(lottery, make_members(6))
    lottery.request_randomness()
    assert lottery.randomness_pending()
    clock.advance_epochs()
    assert not lottery.randomness_pending()
    assert lottery.randomness_state() is RandomnessState.IDLE


def test_failed_mutation_emits_nothing(lottery: ShuffleLottery, make_members) -> None:
    m = make_members(1)[0]
    lottery.add_member(m)
    before = list(lottery.events)
    with pytest.raises(DuplicateMember):
        lottery.add_member(m)
    assert lottery.events == before
    assert lottery.member_count() == 1


def test_events_and_listeners(lottery: ShuffleLottery, make_members) -> None:
    seen: List[LotteryEvent] = []
    lottery.subscribe(seen.append)
    a, b, c = make_members(3)
    lottery.add_member(a)
    lottery.add_member(b)
    lottery.add_member(c)
    lottery.remove_member(a)

    assert event_names(lottery) == [
        "EpochChanged",
        "MemberAdded",
        "MemberAdded",
        "MemberAdded",
        "MemberRemoved",
    ]
    assert seen == lottery.events
    removed = lottery.events[-1]
    assert removed.data == {"member": a, "position": 1, "moved": c}
    assert removed.epoch == lottery.current_epoch()


def test_set_seed_for_past_epoch(lottery: ShuffleLottery, make_members) -> None:
    add_all(lottery, make_members(7))
    past = lottery.current_epoch() - 3
    assert lottery.set_seed(77, epoch=past) == past
    assert lottery.seed_for(past) == 77
    assert len(lottery.winners(past)) == 5
    assert lottery.winners() == []


def test_rejects_zero_winner_count(oracle: LocalOracle) -> None:
    with pytest.raises(ValueError):
        ShuffleLottery(oracle, winner_count=0)


def test_custom_winner_count(oracle: LocalOracle, clock, make_members) -> None:
    lottery = ShuffleLottery(oracle, clock=clock, winner_count=2)
    add_all(lottery, make_members(3))
    lottery.set_seed(5)
    assert len(lottery.winners()) == 2
    assert lottery.request_randomness().member_count == 3


class FailingOracle:
    oracle_id = "broken"

    def request(self, params):
        raise RuntimeError("oracle unavailable")


def test_add_is_rejected_whole_when_epoch_request_fails(
    lottery: ShuffleLottery, clock, make_members
) -> None:
    members = make_members(7)
    add_all(lottery, members[:6])
    clock.advance_epochs()
    lottery.oracle = FailingOracle()
    before = list(lottery.all_members())

    with pytest.raises(RuntimeError, match="oracle unavailable"):
        lottery.add_member(members[6])

    assert lottery.member_count() == 6
    assert lottery.all_members() == before
    assert event_names(lottery)[-1] == "EpochChanged"
    assert event_names(lottery).count("MemberAdded") == 6


def test_remove_is_rejected_whole_when_epoch_request_fails(
    lottery: ShuffleLottery, clock, make_members
) -> None:
    members = make_members(7)
    add_all(lottery, members)
    clock.advance_epochs()
    lottery.oracle = FailingOracle()

    with pytest.raises(RuntimeError):
        lottery.remove_member(members[0])

    assert lottery.member_count() == 7
    assert lottery.position_of(members[0]) == 1
    assert event_names(lottery)[-1] == "EpochChanged"


def test_lifecycle_threshold_must_match_winner_count(oracle: LocalOracle) -> None:
    with pytest.raises(ValueError):
        ShuffleLottery(oracle, lifecycle=RandomnessLifecycle(threshold=5), winner_count=2)
    lottery = ShuffleLottery(oracle, lifecycle=RandomnessLifecycle(threshold=2), winner_count=2)
    assert lottery.lifecycle.threshold == 2


def test_padded_member_ids_resolve_to_the_stored_member(
    lottery: ShuffleLottery, make_members
) -> None:
    members = make_members(7)
    add_all(lottery, members)
    lottery.set_seed(12345)
    winner = lottery.winners()[0]

    assert lottery.position_of(f" {winner}\n") == lottery.position_of(winner)
    assert lottery.is_winner(f"  {winner}")
    lottery.remove_member(f" {members[0]} ")
    assert lottery.member_count() == 6
    assert lottery.events[-1].data["member"] == members[0]
