from __future__ import annotations


class LotteryError(Exception):
    """Base class for validation failures raised by the lottery core."""


class InvalidMember(LotteryError):
    pass


class DuplicateMember(LotteryError):
    pass


class UnknownMember(LotteryError):
    pass


class Unauthorized(LotteryError):
    pass


class AlreadyRequested(LotteryError):
    pass


class InsufficientMembers(LotteryError):
    pass


class StaleOrMismatchedFulfillment(LotteryError):
    pass


class InvalidSeed(LotteryError):
    pass
