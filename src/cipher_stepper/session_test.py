import pytest

from cipher_stepper.errors import KeyStreamError
from cipher_stepper.planner import CharacterStepPlanner, HillStepPlanner
from cipher_stepper.session import CIPHER_NAMES, DEFAULT_SPEED_MS, build_planner


class TestBuildPlanner:
    """Test suite for building planners from raw string inputs"""

    def test_hill(self):
        planner = build_planner("hill", "HELP", "[[3,3],[2,5]]")
        assert isinstance(planner, HillStepPlanner)
        assert planner.result.encrypted_text == "HIAT"

    def test_vigenere(self):
        planner = build_planner("vigenere", "HELLO", "k e y")
        assert isinstance(planner, CharacterStepPlanner)
        assert planner.result.ciphertext == "RIJVS"

    def test_vigenere_bad_key(self):
        with pytest.raises(KeyStreamError):
            build_planner("vigenere", "HELLO", "42")

    def test_integer_keys_are_coerced(self):
        """Integer ciphers parse their key like a matrix cell"""
        assert build_planner("additive", "abc", "3").result.ciphertext == "def"
        assert build_planner("additive", "abc", "junk").result.ciphertext == "abc"
        assert build_planner("autokey", "attack", "16").result.ciphertext == "qtmtcm"

    def test_unknown_cipher(self):
        with pytest.raises(ValueError):
            build_planner("enigma", "abc", "1")

    def test_every_cipher_has_a_speed(self):
        assert set(DEFAULT_SPEED_MS) == set(CIPHER_NAMES)
