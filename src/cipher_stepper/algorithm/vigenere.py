import string
from functools import lru_cache
from typing import Callable, Optional

from cipher_stepper.errors import KeyStreamError
from cipher_stepper.models import CharResult, CharStep

ALPHABET_SIZE = 26
PASS_THROUGH_KEY = " "
PASS_THROUGH_CALCULATION = "Space or non-alphabetic character"

# (letters seen so far, value of the previous plaintext letter) -> shift
type ShiftFn = Callable[[int, Optional[int]], int]


def shift_letter(char: str, shift: int) -> str:
    """Shift a single ASCII letter, preserving its case."""
    offset = ord("A") if char.isupper() else ord("a")
    return chr((ord(char) - offset + shift) % ALPHABET_SIZE + offset)


def calculation_trace(char: str, key_char: str, position: int, key_value: int) -> str:
    total = position + key_value
    shifted = total % ALPHABET_SIZE
    return f"{char} ({position}) + {key_char} ({key_value}) ≡ {total} (mod 26) ≡ {shifted} ≡ {shift_letter(char, key_value)}"


def _encrypt_stream(cipher: str, key: str, plaintext: str, next_shift: ShiftFn) -> CharResult:
    """Walk the plaintext, consuming one key stream position per letter only."""
    steps = []
    letters_seen = 0
    previous_value = None

    for index, char in enumerate(plaintext):
        if char not in string.ascii_letters:
            steps.append(CharStep(
                index=index,
                original=char,
                key_char=PASS_THROUGH_KEY,
                result=char,
                calculation=PASS_THROUGH_CALCULATION,
            ))
            continue

        shift = next_shift(letters_seen, previous_value) % ALPHABET_SIZE
        key_char = chr(shift + ord("A"))
        position = ord(char.upper()) - ord("A")
        steps.append(CharStep(
            index=index,
            original=char,
            key_char=key_char,
            result=shift_letter(char, shift),
            calculation=calculation_trace(char, key_char, position, shift),
            shift=shift,
        ))

        letters_seen += 1
        previous_value = position

    return CharResult(cipher=cipher, plaintext=plaintext, key=key, steps=tuple(steps))


@lru_cache(maxsize=128)
def encrypt(key_stream: str, plaintext: str) -> CharResult:
    """Vigenère: the k-th letter is shifted by key_stream[k mod len(key_stream)].

    key_stream must be upper-case letters only; see keys.derive_key_stream.
    """
    if not key_stream:
        raise KeyStreamError("Key stream must contain at least one letter")
    if not all(c in string.ascii_uppercase for c in key_stream):
        raise KeyStreamError(f"Key stream {key_stream!r} must be upper-case letters A-Z")

    def next_shift(letters_seen: int, _previous: Optional[int]) -> int:
        return ord(key_stream[letters_seen % len(key_stream)]) - ord("A")

    return _encrypt_stream("vigenere", key_stream, plaintext, next_shift)


@lru_cache(maxsize=128)
def encrypt_additive(shift: int, plaintext: str) -> CharResult:
    """Caesar shift of every letter by the same amount."""
    return _encrypt_stream("additive", str(shift), plaintext, lambda _seen, _previous: shift)


@lru_cache(maxsize=128)
def encrypt_autokey(seed: int, plaintext: str) -> CharResult:
    """Autokey: the seed shifts the first letter, each plaintext letter shifts the next."""

    def next_shift(letters_seen: int, previous: Optional[int]) -> int:
        return seed if previous is None else previous

    return _encrypt_stream("autokey", str(seed), plaintext, next_shift)
