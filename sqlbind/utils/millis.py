"""Millisecond conversions used by timeout and pause settings."""

__all__ = ("from_minutes", "from_seconds", "to_seconds")


def from_seconds(seconds: float) -> int:
    return int(seconds * 1000)


def from_minutes(minutes: float) -> int:
    return from_seconds(minutes * 60)


def to_seconds(millis: float) -> float:
    return millis / 1000
