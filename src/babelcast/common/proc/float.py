from collections.abc import Iterable
from typing import Any

import numpy as np
from structlog.typing import EventDict, WrappedLogger


class FloatPrecisionProcessor:
  """
  A structlog processor that rounds floats in event values, including floats nested inside lists,
  tuples, dicts and numpy arrays.

  Audio levels, latencies and confidences are logged constantly; rounding keeps the console
  readable without changing what is recorded.
  """

  def __init__(
    self,
    digits: int = 3,
    only_fields: Iterable[str] = (),
    not_fields: Iterable[str] = (),
  ):
    """
    :param digits: The number of digits to round to
    :param only_fields: Round only these keys. Empty means every key not in ``not_fields``.
    :param not_fields: Keys never rounded
    """
    self.digits = digits
    self.only_fields = frozenset(only_fields)
    self.not_fields = frozenset(not_fields)

  def _round(self, value: Any) -> Any:
    # bool is an int subclass, and np.bool_ is neither; both pass through untouched
    if isinstance(value, (bool, np.bool_)):
      return value
    if isinstance(value, (float, np.floating)):
      return round(float(value), self.digits)
    if isinstance(value, np.ndarray):
      return [self._round(item) for item in value.tolist()]
    if isinstance(value, list):
      return [self._round(item) for item in value]
    # Named tuples such as the log format units render themselves
    if type(value) is tuple:
      return tuple(self._round(item) for item in value)
    if isinstance(value, dict):
      return {k: self._round(v) for k, v in value.items()}
    return value

  def _wants(self, key: str) -> bool:
    if self.only_fields and key not in self.only_fields:
      return False
    return key not in self.not_fields

  def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
      if self._wants(key):
        event_dict[key] = self._round(value)
    return event_dict
