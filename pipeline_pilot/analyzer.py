"""
Core analysis call.

Flow:
1. Receive a DatasetInfo and an optional target column hint
2. Build the per-call prompt (filename, counts, target hint, truncated sample)
3. Single LLM call with the fixed system instruction
4. Split the reply into summary / prose / per-model code (response_parser)
"""

import logging
import os
from typing import Optional

from .llm_client import DEFAULT_MODEL, call_llm, require_api_key
from .response_parser import parse_response
from .schemas import DatasetInfo, MLAnalysisResult

# Configure module logger
logger = logging.getLogger(__name__)

# Configuration from environment
MAX_LLM_TOKENS = int(os.getenv("MAX_LLM_TOKENS", "8192"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))
GEMINI_MODEL = os.getenv("GEMINI_MODEL", DEFAULT_MODEL)

# Prompt file paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
SYSTEM_PROMPT_PATH = os.path.join(BASE_DIR, "prompts", "pipeline_system.txt")

TARGET_HINT_DEFAULT = "Infer from data if possible, otherwise treat as unsupervised or ask user"


def _read_prompt(path: str) -> str:
    """Read a prompt text file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_user_prompt(dataset: DatasetInfo, user_target: Optional[str] = None) -> str:
    target = (user_target or "").strip() or TARGET_HINT_DEFAULT
    return (
        f"filename: {dataset.filename}\n"
        f"rows: {dataset.row_count}\n"
        f"columns: {dataset.col_count}\n"
        f"target: {target}\n"
        f"sample:\n"
        f"{dataset.sample}\n"
    )


def analyze_dataset(dataset: DatasetInfo, user_target: Optional[str] = None) -> MLAnalysisResult:
    """
    Send one dataset sample to the LLM and parse the reply.

    Raises:
        MissingAPIKeyError: no credential configured; raised before any call.
        RuntimeError: the API call failed.
    """
    require_api_key()

    system_prompt = _read_prompt(SYSTEM_PROMPT_PATH)
    user_prompt = build_user_prompt(dataset, user_target)

    logger.info(
        "analyze.request filename=%s rows=%d cols=%d target=%s model=%s",
        dataset.filename,
        dataset.row_count,
        dataset.col_count,
        bool((user_target or "").strip()),
        GEMINI_MODEL,
    )

    try:
        response = call_llm(
            system_prompt,
            user_prompt,
            max_tokens=MAX_LLM_TOKENS,
            model_name=GEMINI_MODEL,
            temperature=LLM_TEMPERATURE,
        )
    except Exception as e:
        logger.error("analyze.llm_failed err=%s", str(e)[:500])
        raise

    logger.debug("LLM raw response: %s", response)

    result = parse_response(response)
    logger.info(
        "analyze.response has_summary=%s models=%s code_chars=%d",
        result.json_summary is not None,
        list(result.model_code_map.keys()),
        len(result.python_code),
    )
    return result
