"""Lazily formatted values for structured log events."""

from typing import NamedTuple


class Unit(NamedTuple):
  value: float


class Seconds(Unit):
  def __str__(self) -> str:
    return f"{self.value:.3f}s"


class Milliseconds(Unit):
  def __str__(self) -> str:
    return f"{self.value:.1f}ms"
