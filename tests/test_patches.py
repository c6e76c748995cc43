"""Tests for patch resolution helpers."""

from __future__ import annotations

from pairwatch.editor.patches import (
    find_occurrences,
    patch_context,
    replace_occurrences,
    resolve_patch,
)


def test_exact_match_is_used_verbatim() -> None:
    resolution = resolve_patch("a = retrun\n", "retrun", "return")

    assert resolution is not None
    assert resolution.old_text == "retrun"
    assert resolution.new_text == "return"
    assert not resolution.fuzzy


def test_empty_old_text_never_resolves() -> None:
    assert resolve_patch("anything", "", "x") is None


def test_fuzzy_match_rebases_indentation() -> None:
    content = "class A:\n    def f(self):\n        retrun 1\n"
    old = "def f(self):\n    retrun 1"
    new = "def f(self):\n    return 1"

    resolution = resolve_patch(content, old, new)

    assert resolution is not None
    assert resolution.fuzzy
    assert resolution.old_text == "    def f(self):\n        retrun 1"
    assert resolution.new_text == "    def f(self):\n        return 1"


def test_fuzzy_match_on_crlf_content_keeps_crlf() -> None:
    content = "def f():\r\n    if x:\r\n        retrun 1\r\n"

    resolution = resolve_patch(content, "if x:\n  retrun 1", "if x:\n  return 1")

    assert resolution is not None
    assert resolution.old_text == "    if x:\r\n        retrun 1"
    assert resolution.new_text == "    if x:\r\n        return 1"
    assert resolution.old_text in content


def test_extra_replacement_lines_inherit_first_indent() -> None:
    content = "if ok:\n\tvalue = 1\n\tprint(value)\n"
    old = "  value = 1\n  print(value)"
    new = "value = 2\nprint(value)\nlog(value)"

    resolution = resolve_patch(content, old, new)

    assert resolution is not None
    assert resolution.new_text == "\tvalue = 2\n\tprint(value)\n\tlog(value)"


def test_first_fuzzy_match_wins() -> None:
    content = "  foo()\n  bar()\n\n    foo()\n    bar()\n"

    resolution = resolve_patch(content, "foo()\n bar()", "baz()\nqux()")

    assert resolution is not None
    assert resolution.old_text == "  foo()\n  bar()"
    assert resolution.new_text == "  baz()\n  qux()"


def test_whitespace_only_needle_does_not_resolve() -> None:
    assert resolve_patch("a\n\nb", "  \n\t", "x") is None


def test_no_match_returns_none() -> None:
    assert resolve_patch("alpha\nbeta", "gamma", "delta") is None


def test_replace_occurrences_all_and_first() -> None:
    assert replace_occurrences("x x x", "x", "y") == ("y y y", 3)
    assert replace_occurrences("x x x", "x", "y", first_only=True) == ("y x x", 1)
    assert replace_occurrences("abc", "z", "y") == ("abc", 0)


def test_find_occurrences_is_non_overlapping() -> None:
    assert find_occurrences("aaaa", "aa") == [0, 2]
    assert find_occurrences("abc", "") == []


def test_patch_context_bounds() -> None:
    content = "0123456789" * 20

    context = patch_context(content, "5678", radius=3)

    assert context == "2345678901"
    assert patch_context(content, "zzz") is None
