"""Tests for rendering string literals into generated modules."""

from __future__ import annotations

import ast

import pytest

from carno_stub_generator.writer import quote


class TestQuote:
    def test_double_quoted(self):
        assert quote("demo.v1") == '"demo.v1"'

    @pytest.mark.parametrize(
        "value",
        ["plain", 'with "quotes"', "back\\slash", "tab\tand\nnewline", "café", "rocket \U0001f680", "nul \x00"],
    )
    def test_reads_back_unchanged(self, value):
        assert ast.literal_eval(quote(value)) == value
