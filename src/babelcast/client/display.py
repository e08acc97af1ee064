"""
The text a subtitle overlay currently shows.

One ``DisplayMode`` is chosen per deployment. Append suits servers that stream a single utterance's
translation in fragments; replace treats each translation as an independent subtitle line and keeps
unrelated utterances from running together.
"""

from enum import StrEnum

from pydantic import PositiveInt
from pydantic.dataclasses import dataclass

DEFAULT_CAP = 500


class DisplayMode(StrEnum):
  APPEND = "append"
  REPLACE = "replace"


@dataclass
class TranscriptBuffer:
  """Bounded display text. When the cap is exceeded only the most recent suffix is kept."""

  mode: DisplayMode = DisplayMode.REPLACE
  cap: PositiveInt = DEFAULT_CAP
  text: str = ""

  def on_text(self, content: str) -> str:
    if not content:
      return self.text
    if self.mode is DisplayMode.APPEND:
      self._set(self.text + content)
    else:
      self._set(content)
    return self.text

  def on_turn_complete(self) -> str:
    if self.mode is DisplayMode.APPEND:
      self._set(self.text + " ")
    return self.text

  def clear(self) -> None:
    self.text = ""

  def _set(self, text: str) -> None:
    self.text = text[-self.cap :]
