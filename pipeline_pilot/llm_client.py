"""
Minimal LLM client wrapper using Google Gemini.

Rationale:
- Use google-genai SDK (supported) for Gemini access.
- Keep interface tiny: call_llm(system_prompt, user_prompt) -> str.
- No retries / no fallback. A missing key fails before any client is built.
"""

import logging
import os
from typing import Optional

try:
    from google import genai
    from google.genai import types
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "Missing dependency for Gemini client. Install 'google-genai'. "
        "Original import error: " + str(e)
    )

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class MissingAPIKeyError(RuntimeError):
    pass


def get_api_key() -> Optional[str]:
    # Read lazily (after main.py loads .env)
    return os.getenv("GEMINI_API_KEY") or os.getenv("LLM_API_KEY")


def require_api_key() -> str:
    api_key = get_api_key()
    if not api_key:
        raise MissingAPIKeyError("API key is missing: set GEMINI_API_KEY or LLM_API_KEY in the environment")
    return api_key


def call_llm(
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 8192,
    *,
    model_name: Optional[str] = None,
    temperature: float = 0.2,
) -> str:
    """
    Call Gemini LLM with system instruction and user prompt.
    """
    api_key = require_api_key()
    model_name = model_name or os.getenv("GEMINI_MODEL", DEFAULT_MODEL)

    try:
        client = genai.Client(api_key=api_key)

        response = client.models.generate_content(
            model=model_name,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        )

        # Prefer the SDK's convenience property
        result = getattr(response, "text", None)
        if result:
            return result

        # Fallback: attempt to extract from candidates (SDK shape can vary across versions)
        candidates = getattr(response, "candidates", None) or []
        content = getattr(candidates[0], "content", None) if candidates else None
        parts = getattr(content, "parts", None) if content else None
        if parts:
            text = "".join(getattr(p, "text", None) or "" for p in parts)
            if text:
                return text

        # An empty reply (no text, no candidates) is not an error: the parser degrades to empty results
        logger.warning("llm.empty_reply model=%s candidates=%d", model_name, len(candidates))
        return ""

    except Exception as e:
        raise RuntimeError(f"Gemini API error: {str(e)}")
