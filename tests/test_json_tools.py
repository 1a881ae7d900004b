from __future__ import annotations

import pytest

from vibecheck.json_tools import (
    decode_first_object,
    drop_comments,
    drop_trailing_commas,
    parse_json_object,
    unfence,
)


def test_plain_object_parses() -> None:
    assert parse_json_object('{"a": 1}') == {"a": 1}


def test_fenced_object_parses() -> None:
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}


def test_last_fenced_block_wins() -> None:
    raw = 'Draft:\n```json\n{"a": 1}\n```\nFinal:\n```json\n{"a": 2}\n```\n'
    assert unfence(raw) == '{"a": 2}'
    assert parse_json_object(raw) == {"a": 2}


def test_prose_comments_and_trailing_commas_are_cleaned() -> None:
    raw = 'Here you go:\n{\n  // overall\n  "a": [1, 2,],\n  "b": {"c": "}"},\n}\nThanks!'
    assert parse_json_object(raw) == {"a": [1, 2], "b": {"c": "}"}}


def test_non_object_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_json_object("[1, 2, 3]")


def test_garbage_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_json_object("I could not audit this repository.")


def test_truncated_object_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_json_object('{"scores": {"total": 40')


def test_helpers() -> None:
    assert unfence("```\n{}\n```").strip() == "{}"
    assert drop_trailing_commas("[1, {\"a\": 2,},]") == '[1, {"a": 2}]'
    assert drop_comments('{/* x */"a": 1\n  // note\n}') == '{"a": 1\n\n}'
    assert decode_first_object('x {"a": "{"} y {"b": 1}') == {"a": "{"}
    with pytest.raises(ValueError):
        decode_first_object("no braces")


def test_cleanup_leaves_string_contents_alone() -> None:
    assert drop_trailing_commas('{"r": "a, ]", "b": [1,],}') == '{"r": "a, ]", "b": [1]}'
    assert drop_comments('{"glob": "src/*.py /* not a comment */"}') == '{"glob": "src/*.py /* not a comment */"}'
    raw = 'Result:\n{"rationale": "lists like [a, ] are fine", "q": "say \\"hi, }\\"",}'
    assert parse_json_object(raw) == {"rationale": "lists like [a, ] are fine", "q": 'say "hi, }"'}
