import pytest

from cipher_stepper.errors import KeyStreamError
from cipher_stepper.keys import (
    coerce_cell,
    derive_key_stream,
    is_square_matrix,
    load_text,
    parse_key_matrix,
    read_key_matrix,
)
from cipher_stepper.models import FALLBACK_KEY_MATRIX


class TestCoerceCell:
    """Test suite for matrix cell coercion"""

    @pytest.mark.parametrize("cell, expected", [
        (5, 5),
        (-3, -3),
        ("12", 12),
        ("12abc", 12),
        ("  -4", -4),
        ("abc", 0),
        ("", 0),
        (3.7, 3),
        (-3.7, -3),
        (float("nan"), 0),
        (None, 0),
        (True, 0),
        ([5], 0),
    ])
    def test_coerce(self, cell, expected):
        """Non-numeric cells become 0, numeric strings keep their leading integer"""
        assert coerce_cell(cell) == expected


class TestParseKeyMatrix:
    """Test suite for the key matrix parse boundary"""

    def test_valid_json(self):
        """Test a well formed 2x2 matrix"""
        parsed = parse_key_matrix("[[3,3],[2,5]]")
        assert parsed.matrix == ((3, 3), (2, 5))
        assert not parsed.is_fallback
        assert parsed.size == 2

    def test_url_encoded(self):
        """Test a matrix that arrives URL encoded from a query string"""
        parsed = parse_key_matrix("%5B%5B1%2C2%5D%2C%5B3%2C4%5D%5D")
        assert parsed.matrix == ((1, 2), (3, 4))

    def test_string_cells_are_coerced(self):
        """Test string numbers are accepted and junk becomes 0"""
        parsed = parse_key_matrix('[["3", "x"], [2, "5"]]')
        assert parsed.matrix == ((3, 0), (2, 5))
        assert not parsed.is_fallback

    def test_decoded_rows(self):
        """Test an already decoded list of rows"""
        parsed = parse_key_matrix([[1, 0], [0, 1]])
        assert parsed.matrix == ((1, 0), (0, 1))

    @pytest.mark.parametrize("raw", [
        "not json",
        "",
        "[]",
        "[1, 2]",
        "[[1, 2], [3]]",
        "[[1, 2, 3], [4, 5, 6]]",
        '{"a": 1}',
        "[[]]",
        "[" * 5000,
    ])
    def test_malformed_falls_back(self, raw):
        """Malformed input is replaced by the 1x1 zero matrix"""
        parsed = parse_key_matrix(raw)
        assert parsed.matrix == FALLBACK_KEY_MATRIX
        assert parsed.is_fallback

    def test_fallback_is_logged(self, caplog):
        """Test the fallback leaves a warning"""
        with caplog.at_level("WARNING", logger="cipher_stepper.keys"):
            parse_key_matrix("not json")
        assert "fallback" in caplog.text

    @pytest.mark.parametrize("raw", ["[" * 5000 + "]" * 5000, "[[" * 2000 + "]]" * 2000])
    def test_deep_nesting_does_not_raise(self, raw):
        """Deeply nested keys either exceed the decoder depth or nest a list in a 1x1 cell; both act as [[0]]"""
        assert read_key_matrix(raw).matrix == FALLBACK_KEY_MATRIX

    def test_read_does_not_log(self, caplog):
        """read_key_matrix reports the reason instead of logging it"""
        with caplog.at_level("WARNING", logger="cipher_stepper.keys"):
            parsed = read_key_matrix("not json")
        assert parsed.is_fallback
        assert parsed.reason.startswith("not valid JSON")
        assert caplog.records == []

    def test_long_key_is_shortened_in_log(self, caplog):
        with caplog.at_level("WARNING", logger="cipher_stepper.keys"):
            parse_key_matrix("[" * 5000)
        assert "fallback" in caplog.text
        assert "[" * 41 not in caplog.text

    def test_is_square_matrix(self):
        assert is_square_matrix([[1]])
        assert not is_square_matrix([])
        assert not is_square_matrix("[[1]]")


class TestKeyStream:
    """Test suite for Vigenère key stream derivation"""

    def test_letters_only_upper_case(self):
        """Non-letters are stripped and the rest upper-cased"""
        assert derive_key_stream("k-e y1") == "KEY"

    def test_non_ascii_letters_are_dropped(self):
        assert derive_key_stream("clé") == "CL"

    @pytest.mark.parametrize("raw", ["", "123", " !? "])
    def test_no_letters_rejected(self, raw):
        """A key without letters is a precondition failure"""
        with pytest.raises(KeyStreamError, match="at least one letter"):
            derive_key_stream(raw)


def test_load_text(tmp_path):
    """Test loading plaintext from a file drops one trailing newline"""
    path = tmp_path / "plain.txt"
    path.write_text("Hello, World!\n", encoding="utf-8")
    assert load_text(str(path)) == "Hello, World!"
