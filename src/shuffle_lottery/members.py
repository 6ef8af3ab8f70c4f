from __future__ import annotations

from typing import Dict, Iterable, List

import base58

from .errors import DuplicateMember, InvalidMember, UnknownMember
from .project_constants import MEMBER_KEY_BYTES, NULL_MEMBER


def validate_member(member: str) -> str:
    """
    Members are base58 public keys (32 bytes decoded).
    The all-zero key is reserved as the null identifier.
    """
    if not isinstance(member, str):
        raise InvalidMember(f"Member must be a base58 string, got {type(member).__name__}")
    addr = member.strip()
    if not addr or addr == NULL_MEMBER:
        raise InvalidMember(f"Null member identifier: {member!r}")

    try:
        raw = base58.b58decode(addr)
    except ValueError as e:
        raise InvalidMember(f"Member {addr!r} is not valid base58: {e}")

    if len(raw) != MEMBER_KEY_BYTES:
        raise InvalidMember(
            f"Member {addr!r} decodes to {len(raw)} bytes, expected {MEMBER_KEY_BYTES}"
        )
    if not any(raw):
        raise InvalidMember(f"Null member identifier: {addr!r}")
    return addr


def _normalise(member: object) -> object:
    # same form validate_member stores
    return member.strip() if isinstance(member, str) else member


class MemberRegistry:
    """
    Insertion-ordered set of members with O(1) add / remove / lookup.

    Positions are 1-based (0 = absent). Removal moves the last member into
    the freed slot, so a member's position is not stable across removals.
    """

    def __init__(self) -> None:
        self._members: List[str] = []
        self._positions: Dict[str, int] = {}

    @classmethod
    def from_members(cls, members: Iterable[str]) -> "MemberRegistry":
        registry = cls()
        for m in members:
            registry.add(m)
        return registry

    def add(self, member: str) -> int:
        addr = validate_member(member)
        if addr in self._positions:
            raise DuplicateMember(f"Member already registered: {addr}")

        self._members.append(addr)
        self._positions[addr] = len(self._members)
        return len(self._members)

    def remove(self, member: str) -> int:
        member = _normalise(member)
        pos = self._positions.get(member, 0)
        if pos == 0:
            raise UnknownMember(f"Member not registered: {member}")

        idx = pos - 1
        last_idx = len(self._members) - 1
        if idx != last_idx:
            moved = self._members[last_idx]
            self._members[idx] = moved
            self._positions[moved] = pos
        self._members.pop()
        del self._positions[member]
        return pos

    def count(self) -> int:
        return len(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, member: object) -> bool:
        return _normalise(member) in self._positions

    def all_members(self) -> List[str]:
        return list(self._members)

    def position_of(self, member: str) -> int:
        return self._positions.get(_normalise(member), 0)

    def member_at(self, index: int) -> str:
        """0-based lookup; raises IndexError when out of range."""
        if index < 0:
            raise IndexError(index)
        return self._members[index]

    def check_invariants(self) -> None:
        if len(self._positions) != len(self._members):
            raise RuntimeError(
                f"Registry size mismatch: members={len(self._members)} positions={len(self._positions)}"
            )
        for i, m in enumerate(self._members):
            if self._positions.get(m) != i + 1:
                raise RuntimeError(
                    f"Registry position mismatch for {m}: index={i} recorded={self._positions.get(m)}"
                )
