"""Mapping from the language names users pick to recognizer language codes."""

LANGUAGE_CODES: dict[str, str] = {
  "japanese": "ja",
  "english": "en",
  "spanish": "es",
  "chinese": "zh",
  "korean": "ko",
  "french": "fr",
  "german": "de",
}

DEFAULT_RECOGNIZER_LANGUAGE = "en"

_KNOWN_CODES = frozenset(LANGUAGE_CODES.values())


def recognizer_language(language: str) -> str:
  """
  Resolve a language name or tag to the two-letter code speech recognizers expect.

  Accepts display names ("Japanese"), bare codes ("ja") and region tags ("ja-JP"). Anything
  unrecognized falls back to English.
  """
  key = language.strip().lower()
  if key in LANGUAGE_CODES:
    return LANGUAGE_CODES[key]

  primary = key.replace("_", "-").split("-", 1)[0]
  if primary in _KNOWN_CODES:
    return primary
  return DEFAULT_RECOGNIZER_LANGUAGE
