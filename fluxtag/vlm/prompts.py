"""
Purpose:
- Prompt texts for the two tagging modes plus the shared output instructions.
- "flux": shapes/composition, no style words. "qwen": OCR + objective detail.
"""

FLUX_PROMPT = """Describe this image in detail for training a Flux text-to-image model.
Focus on the subject, animal features, facial features, and composition. Include descriptions of shapes.
Use natural language sentences. Do not use "The image shows". Do not describe style. Do not describe background. Do not use words like "like", "similar to", or "possibly". Start directly with the description."""

QWEN_PROMPT = """Describe this image in extreme detail.
1. Identify and transcribe any visible text (OCR) accurately.
2. Describe the exact location of objects, colors, and lighting.
3. Keep the tone objective and factual.
4. Output in natural language sentences.
Start directly with the description."""

TAGGING_MODES = {
    "flux": FLUX_PROMPT,
    "qwen": QWEN_PROMPT,
}

# Appended to the user prompt (Gemini) or sent as system text (OpenAI)
CAPTION_OUTPUT_INSTRUCTIONS = """OUTPUT INSTRUCTIONS:
Return a JSON object with two keys:
1. "en": The detailed English description based on the prompt above.
2. "zh": A direct translation of that English description into Simplified Chinese."""

OPENAI_SYSTEM_INSTRUCTION = (
    "You are an expert image captioning assistant for AI training.\n" + CAPTION_OUTPUT_INSTRUCTIONS
)

TRANSLATE_SYSTEM_INSTRUCTION = (
    "You are a translator helper. Translate the user's Chinese text into detailed, descriptive English "
    "suitable for image generation prompts. Only return the translated text."
)


def prompt_for_mode(mode: str) -> str:
    """Default prompt for a tagging mode; unknown modes fall back to flux."""
    return TAGGING_MODES.get((mode or "").strip().lower(), FLUX_PROMPT)


def translate_prompt(chinese_text: str) -> str:
    return (
        "Translate the following Chinese text to detailed English suitable for image generation prompts. "
        "Keep it descriptive.\n\n"
        f'Text: "{chinese_text}"'
    )
