"""Translation instructions, including the persona style suffixes."""

from babelcast.wire import Persona

BASE_INSTRUCTION = (
  "Translate the following {source} text to {target} naturally for subtitles. "
  "Only output the translation, nothing else."
)

PERSONA_STYLES: dict[Persona, str] = {
  Persona.SAMURAI: (
    "Speak like a samurai from a period drama: archaic, formal and dignified, with old-fashioned "
    "forms of address."
  ),
  Persona.TSUNDERE: (
    "Speak like a tsundere anime character: curt and a little dismissive on the surface, but "
    "clearly affectionate underneath."
  ),
  Persona.CAT: "Speak like a playful cat, adding cat-like sounds and verbal tics where natural.",
  Persona.BUTLER: (
    "Speak like a devoted butler: deferential, impeccably polite and formal toward the listener."
  ),
}


def build_instruction(source_lang: str, target_lang: str, persona: Persona = Persona.NONE) -> str:
  instruction = BASE_INSTRUCTION.format(source=source_lang, target=target_lang)
  style = PERSONA_STYLES.get(persona)
  if style:
    instruction = f"{instruction} {style}"
  return instruction


def build_translation_prompt(
  text: str, source_lang: str, target_lang: str, persona: Persona = Persona.NONE
) -> str:
  """The complete prompt sent to the translation model for one utterance."""
  return f'{build_instruction(source_lang, target_lang, persona)}\n\nText: "{text}"'
