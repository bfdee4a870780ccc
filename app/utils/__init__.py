"""
Shared utilities
"""

from .json_extractor import extract_json_from_text, extract_json_safely
from .slug import generate_slug

__all__ = [
    "extract_json_from_text",
    "extract_json_safely",
    "generate_slug",
]
