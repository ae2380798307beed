import re

import pytest

from switchyard.pattern import (
    DEFAULT_CAPTURE,
    WILDCARD_CAPTURE,
    ParamTable,
    compile_segment,
    is_pattern,
)


@pytest.mark.parametrize(
    "segment,expected",
    [
        ("users", "users"),
        (":id", DEFAULT_CAPTURE),
        ("*", WILDCARD_CAPTURE),
        ("v*", "v" + WILDCARD_CAPTURE),
        ("(?:abc)", "(?:abc)"),
        (r"(\w*)", r"(\w*)"),
        ("(.*)", "(.*)"),
    ],
)
def test_compile_segment(segment: str, expected: str) -> None:
    assert compile_segment(segment) == expected


@pytest.mark.parametrize("segment", [":id", "*", "v*", "files", ":id.json"])
def test_compile_segment_idempotent(segment: str) -> None:
    once = compile_segment(segment)
    assert compile_segment(once) == once


def test_is_pattern() -> None:
    assert is_pattern(":id")
    assert is_pattern("*")
    assert not is_pattern("users")
    assert not is_pattern("(?:users|people)")
    assert not is_pattern(WILDCARD_CAPTURE)


def test_compiled_segments_match() -> None:
    assert re.fullmatch(compile_segment(":id"), "abc-123")
    assert not re.fullmatch(compile_segment(":id"), "abc_123")
    assert re.fullmatch(compile_segment("*"), "report 2024 (final).pdf")


# --- Param substitutions ------------------------------------------------------
def test_register_prefixes_token() -> None:
    params = ParamTable()
    assert params.register("id", r"\d+") == ":id"
    assert params.register(":name", "[a-z]+") == ":name"
    assert ":id" in params
    assert len(params) == 2


def test_register_wraps_matcher_without_group() -> None:
    params = ParamTable()
    params.register("id", r"\d+")
    assert compile_segment(":id", params) == r"(\d+)"


def test_register_keeps_matcher_group() -> None:
    params = ParamTable()
    params.register("slug", re.compile(r"([a-z]+(?:-[a-z]+)*)"))
    assert compile_segment(":slug", params) == r"([a-z]+(?:-[a-z]+)*)"


def test_register_replaces_literally() -> None:
    """Backslashes in the matcher are not treated as substitution escapes."""
    params = ParamTable()
    params.register("year", r"\d{4}")
    assert compile_segment(":year", params) == r"(\d{4})"


def test_substitution_within_segment() -> None:
    params = ParamTable()
    params.register("slug", "[a-z]+")
    assert compile_segment(":slug.html", params) == "([a-z]+).html"


def test_substitution_requires_whole_token() -> None:
    params = ParamTable()
    params.register("id", r"\d+")
    assert compile_segment(":identifier", params) == DEFAULT_CAPTURE


def test_first_changing_substitution_wins() -> None:
    params = ParamTable()
    params.register("a", "[a]+")
    params.register("b", "[b]+")
    assert compile_segment(":b", params) == "([b]+)"
    assert compile_segment(":a", params) == "([a]+)"
    assert compile_segment(":c", params) == DEFAULT_CAPTURE
