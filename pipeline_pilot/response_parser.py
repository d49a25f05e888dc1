"""
Split one free-form LLM reply into a structured analysis result.

The reply is expected (but not guaranteed) to contain:
1. A ```json fenced block with the summary object
2. A "### (2) HUMAN SUMMARY" prose section
3. One ```python block per recommended model, each starting with "# MODEL: <name>"

Every step has a local fallback; parse_response never raises on malformed input.
"""

import json
import logging
import re
from typing import Dict, List, Optional

from pydantic import ValidationError

from .schemas import JSONSummary, MLAnalysisResult

logger = logging.getLogger(__name__)

DEFAULT_PIPELINE_NAME = "Default Pipeline"

_JSON_BLOCK_RE = re.compile(r"```json\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_CODE_BLOCK_RE = re.compile(r"```(?:python3?|py)\b([\s\S]*?)```", re.IGNORECASE)
_MODEL_MARKER_RE = re.compile(r"^#+\s*MODEL\s*:(.+)$", re.IGNORECASE)
_SUMMARY_OPEN_RE = re.compile(r"#{2,4}[ \t]*\(2\)[ \t]*HUMAN SUMMARY", re.IGNORECASE)
_SUMMARY_CLOSE_RE = re.compile(r"#{2,4}[ \t]*\(3\)[ \t]*PYTHON CODE", re.IGNORECASE)


def _parse_summary(raw_json: str) -> Optional[JSONSummary]:
    try:
        data = json.loads(raw_json)
    except (ValueError, RecursionError) as e:
        logger.warning("parser.json_decode_failed err=%s", str(e)[:200])
        return None

    if not isinstance(data, dict):
        logger.warning("parser.json_not_object type=%s", type(data).__name__)
        return None

    try:
        return JSONSummary.model_validate(data)
    except ValidationError as e:
        logger.warning("parser.json_invalid_summary errors=%d", e.error_count())
        return None


def _extract_code_blocks(text: str) -> List[str]:
    blocks = []
    for match in _CODE_BLOCK_RE.finditer(text):
        code = match.group(1).strip()
        if code:
            blocks.append(code)
    return blocks


def find_model_marker(code: str) -> Optional[str]:
    """
    Return the model name from a leading "# MODEL: <name>" comment, if any.

    Only the comment lines at the top of the block are considered; the scan
    stops at the first line of actual code.
    """
    for line in code.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith("#"):
            break
        match = _MODEL_MARKER_RE.match(stripped)
        if match:
            name = match.group(1).strip()
            if name:
                return name
    return None


def _build_model_code_map(code_blocks: List[str], summary: Optional[JSONSummary]) -> Dict[str, str]:
    choices = summary.main_model_choices if summary else []
    first_choice = choices[0] if choices else None

    model_code_map: Dict[str, str] = {}
    for code in code_blocks:
        name = find_model_marker(code)
        if name:
            model_code_map[name] = code
        elif first_choice and first_choice not in model_code_map:
            model_code_map[first_choice] = code

    # Nothing was assignable by marker or summary: keep the first block under some name
    if not model_code_map and code_blocks:
        model_code_map[first_choice or DEFAULT_PIPELINE_NAME] = code_blocks[0]

    return model_code_map


def _extract_human_summary(text: str, json_block: Optional[str]) -> str:
    opening = _SUMMARY_OPEN_RE.search(text)
    if opening:
        closing = _SUMMARY_CLOSE_RE.search(text, opening.end())
        end = closing.start() if closing else len(text)
        return text[opening.end():end].strip()

    # No section header: whatever is left once the fenced blocks are removed
    remainder = text.replace(json_block, "", 1) if json_block else text
    return _CODE_BLOCK_RE.sub("", remainder).strip()


def parse_response(text: str) -> MLAnalysisResult:
    """
    Parse the raw LLM reply.

    Args:
        text: The model's reply, verbatim.

    Returns:
        MLAnalysisResult. json_summary is None when the JSON block is missing or
        unusable; python_code and model_code_map are empty when there is no code.
    """
    text = text or ""

    json_match = _JSON_BLOCK_RE.search(text)
    summary = _parse_summary(json_match.group(1)) if json_match else None

    code_blocks = _extract_code_blocks(text)
    model_code_map = _build_model_code_map(code_blocks, summary)

    human_summary = _extract_human_summary(text, json_match.group(0) if json_match else None)

    logger.debug(
        "parser.done has_summary=%s code_blocks=%d models=%s summary_chars=%d",
        summary is not None,
        len(code_blocks),
        list(model_code_map.keys()),
        len(human_summary),
    )

    return MLAnalysisResult(
        json_summary=summary,
        human_summary=human_summary,
        python_code=code_blocks[0] if code_blocks else "",
        model_code_map=model_code_map,
        raw_response=text,
    )
