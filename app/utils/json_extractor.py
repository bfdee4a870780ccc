"""
JSON extraction utility for parsing LLM responses that may contain
additional prose, thinking blocks, or markdown code blocks.
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)
_CODE_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


def _decode_first_json(text: str) -> Union[Dict[str, Any], list, None]:
    """Decode the first JSON object or array that starts anywhere in text."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            parsed, _ = decoder.raw_decode(text, index)
            return parsed
        except json.JSONDecodeError:
            continue
    return None


def extract_json_from_text(
    text: str,
    default: Optional[Union[Dict[str, Any], list]] = None,
    required_keys: Optional[list[str]] = None,
) -> Union[Dict[str, Any], list, None]:
    """
    Extract JSON from text that may contain additional formatting.

    Args:
        text: The text containing JSON data
        default: Value returned when extraction fails
        required_keys: Keys that must be present when the JSON is an object

    Returns:
        Parsed JSON object (dict or list) or default
    """
    if not text:
        logger.warning("Empty text provided for JSON extraction")
        return default

    clean_text = _THINK_BLOCK.sub("", text).strip()

    candidates = [match.strip() for match in _CODE_BLOCK.findall(clean_text)]
    candidates.append(clean_text)

    for candidate in candidates:
        parsed = _decode_first_json(candidate)
        if parsed is None:
            continue
        if required_keys and isinstance(parsed, dict) and not all(key in parsed for key in required_keys):
            logger.debug(f"JSON missing required keys: {required_keys}")
            continue
        return parsed

    logger.warning("Could not extract valid JSON from text")
    return default


def extract_json_safely(
    text: str,
    expected_type: type = dict,
    default: Optional[Union[Dict[str, Any], list]] = None,
    required_keys: Optional[list[str]] = None,
) -> Union[Dict[str, Any], list, None]:
    """
    Extract JSON ensuring it matches the expected type.

    Returns:
        Parsed JSON of the expected type or default
    """
    result = extract_json_from_text(text, default, required_keys=required_keys)

    if result is not None and not isinstance(result, expected_type):
        logger.warning(f"Extracted JSON is not of expected type {expected_type.__name__}")
        return default

    return result
