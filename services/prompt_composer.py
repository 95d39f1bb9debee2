"""
Prompt composition for image generation.

Pure functions only: the same inputs always give the same prompt, and the
prompt is never empty and never longer than the configured cap.
"""
from typing import Optional, List

from config.style_presets import create_style_context
from models.generation import ComposedPrompt
from prompts.sketch_prompts import DEFAULT_GENERATION_PROMPT

PROMPT_CHAR_LIMIT = 1000
SENTENCE_ENDINGS = (".", "!", "?")
TRAILING_JUNK = " ,;:-"


def _clean(text: Optional[str]) -> str:
    """Collapse whitespace; None becomes ''."""
    if not text:
        return ""
    return " ".join(text.split())


def _as_sentence(text: str) -> str:
    return text if text.endswith(SENTENCE_ENDINGS) else f"{text}."


def truncate_prompt(text: str, max_length: int = PROMPT_CHAR_LIMIT) -> str:
    """
    Cut `text` to at most `max_length` characters, from the end.

    Prefers the last word boundary in the second half of the budget so words
    are not split; falls back to a hard cut when there is no such boundary.
    """
    max_length = max(1, max_length)
    if len(text) <= max_length:
        return text

    hard_cut = text[:max_length]
    if text[max_length].isspace():
        candidate = hard_cut
    else:
        boundary = hard_cut.rfind(" ")
        candidate = hard_cut[:boundary] if boundary >= max_length // 2 else hard_cut

    candidate = candidate.rstrip(TRAILING_JUNK)
    return candidate or hard_cut


def _style_section(style: Optional[str]) -> List[str]:
    style_context = create_style_context(style)
    if not style_context:
        return []
    display_name, phrase = style_context
    return [f"Main style, highest priority: {display_name}. Render the entire image as {phrase}."]


def _instruction_section(personal_prompt: str) -> List[str]:
    if not personal_prompt:
        return []
    return [f'Follow this instruction exactly: "{personal_prompt}".']


def _scene_section(description: str, question: str, answer: str) -> List[str]:
    sentences = []
    if description:
        sentences.append(_as_sentence(description))
    if question and answer:
        sentences.append(f'Asked whether the drawing shows "{question}", the user answered "{answer}".')
    elif question:
        sentences.append(f'The drawing was guessed to show "{question}".')
    elif answer:
        sentences.append(f'The user added: "{answer}".')
    return sentences


def compose_prompt(
    description: Optional[str] = "",
    style: Optional[str] = None,
    prior_question: Optional[str] = None,
    prior_answer: Optional[str] = None,
    personal_prompt: Optional[str] = None,
    max_length: int = PROMPT_CHAR_LIMIT,
) -> ComposedPrompt:
    """
    Merge every available signal into one bounded generation prompt.

    Order: style (dominant), the user's own instruction, then the sketch
    description with the last guess/answer pair. Truncation removes text from
    the end, so the scene details go first when the budget is tight.

    Args:
        description: Text from the description model (may be empty)
        style: Style label from the carousel, any alias; unknown labels are kept verbatim
        prior_question: Last guess shown to the user
        prior_answer: The user's answer to that guess
        personal_prompt: Free-text instruction typed by the user
        max_length: Hard cap on the prompt length

    Returns:
        ComposedPrompt with the cleaned description and the final prompt text
    """
    description = _clean(description)
    personal_prompt = _clean(personal_prompt)

    sections = []
    sections += _style_section(style)
    sections += _instruction_section(personal_prompt)
    sections += _scene_section(description, _clean(prior_question), _clean(prior_answer))

    prompt_text = " ".join(sections)
    if not prompt_text:
        prompt_text = description or personal_prompt or DEFAULT_GENERATION_PROMPT

    return ComposedPrompt(
        description=description,
        prompt_text=truncate_prompt(prompt_text, max_length),
    )
