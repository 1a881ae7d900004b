"""Recover the audit JSON object from a chat model's reply."""

from __future__ import annotations

import json
import re

JSON_BLOCK_RE = re.compile(r"```json\s*\n(.*?)\n\s*```", re.IGNORECASE | re.DOTALL)
FENCE_MARK_RE = re.compile(r"```[A-Za-z]*")
# Quoted strings are matched first and kept, so cleanup never edits their contents.
_STRING = r'("(?:[^"\\\n]|\\.)*")'
BLOCK_COMMENT_RE = re.compile(_STRING + r"|/\*.*?\*/", re.DOTALL)
LINE_COMMENT_RE = re.compile(r"^[ \t]*//[^\n]*$", re.MULTILINE)
TRAILING_COMMA_RE = re.compile(_STRING + r"|,\s*(?=[}\]])")

_decoder = json.JSONDecoder()


def _keep_string(m: re.Match) -> str:
    return m.group(1) or ""


def unfence(text: str) -> str:
    """Body of the last ```json block, else the text with fence markers removed."""
    blocks = JSON_BLOCK_RE.findall(text)
    if blocks:
        return blocks[-1]
    return FENCE_MARK_RE.sub("", text)


def drop_comments(text: str) -> str:
    return LINE_COMMENT_RE.sub("", BLOCK_COMMENT_RE.sub(_keep_string, text))


def drop_trailing_commas(text: str) -> str:
    return TRAILING_COMMA_RE.sub(_keep_string, text)


def decode_first_object(text: str) -> dict:
    """Decode the object opening at the first brace; anything after it is ignored."""
    start = text.find("{")
    if start == -1:
        raise ValueError("response contains no JSON object")
    value, _ = _decoder.raw_decode(text, start)
    return value


def parse_json_object(raw: str) -> dict:
    """Parse a reply as one JSON object, retrying once after cleanup.

    Raises ValueError when neither attempt yields an object.
    """
    try:
        value = json.loads(raw)
    except ValueError:
        cleaned = drop_trailing_commas(drop_comments(unfence(raw)))
        try:
            value = decode_first_object(cleaned)
        except ValueError as e:
            raise ValueError(f"response is not valid JSON: {e}") from None
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {type(value).__name__}")
    return value
