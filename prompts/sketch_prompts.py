# Prompt templates sent to the Gemini description model.
# Kept short: the live-guess prompt runs every few seconds while the user draws.

PROMPT_BEGIN_MARKER = "<<<BEGIN_PROMPT>>>"
PROMPT_END_MARKER = "<<<END_PROMPT>>>"

PREDICT_PROMPT = """
Look at this hand-drawn sketch and guess what it shows in two to four words.
Also judge whether the drawing is appropriate for a family audience.

Reply with a single JSON object and nothing else:
{{"guess": "<two to four words>", "ethics": <1 if appropriate, 0 otherwise>}}
{previous_guess_context}"""

PREVIOUS_GUESS_CONTEXT = """
Do not repeat the previous guess: "{previous_guess}". Make the new guess more specific and different.
"""

PREVIOUS_ANSWER_CONTEXT = """The user answered "{previous_answer}" when asked about that guess.
"""

DESCRIBE_PROMPT = """
You are an expert visual interpreter. Analyze the attached sketch: infer the main subject(s), their positions,
proportions, perspective and intent, then suggest realistic colors, materials, textures, lighting and a coherent
background. Do not mention the sketch, the user or the prompt.
{context}
Return ONLY one paragraph of at most {max_length} characters between {begin} and {end}.

{begin}
{{final paragraph only}}
{end}
"""

DESCRIBE_CONTEXT = """The last question asked to the user was "{question}" and the answer was "{answer}". Use it to disambiguate the subject.
"""

# Used when the model answered but the answer could not be understood.
FALLBACK_DESCRIPTION = "A hand-drawn scene rendered with clean shapes, balanced colors and soft natural lighting"
FALLBACK_GUESS = "a drawing"

# Used when the composer has nothing else to work with.
DEFAULT_GENERATION_PROMPT = "A detailed, beautiful image"


def build_predict_prompt(previous_guess: str = None, previous_answer: str = None) -> str:
    """Create the live-guess prompt, steering away from the last guess if there was one."""
    context = ""
    if previous_guess:
        context += PREVIOUS_GUESS_CONTEXT.format(previous_guess=previous_guess)
        if previous_answer:
            context += PREVIOUS_ANSWER_CONTEXT.format(previous_answer=previous_answer)
    return PREDICT_PROMPT.format(previous_guess_context=context).strip()


def build_describe_prompt(question: str = None, answer: str = None, max_length: int = 1000) -> str:
    """Create the description prompt used before image generation."""
    context = ""
    if question:
        context = DESCRIBE_CONTEXT.format(question=question, answer=answer or "")
    return DESCRIBE_PROMPT.format(
        context=context,
        max_length=max_length,
        begin=PROMPT_BEGIN_MARKER,
        end=PROMPT_END_MARKER,
    ).strip()
