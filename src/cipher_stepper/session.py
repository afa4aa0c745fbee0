from typing import Literal, Union

from cipher_stepper.algorithm import hill, vigenere
from cipher_stepper.keys import RawKeyMatrix, coerce_cell, derive_key_stream, parse_key_matrix
from cipher_stepper.planner import CharacterStepPlanner, HillStepPlanner

type CipherName = Literal["hill", "vigenere", "additive", "autokey"]

CIPHER_NAMES: tuple[CipherName, ...] = ("hill", "vigenere", "additive", "autokey")

DEFAULT_SPEED_MS = {
    "hill": 1500,
    "vigenere": 1000,
    "additive": 1000,
    "autokey": 1000,
}


def hill_planner(text: str, raw_key: RawKeyMatrix) -> HillStepPlanner:
    parsed = parse_key_matrix(raw_key)
    return HillStepPlanner(hill.encrypt(parsed.matrix, text))


def vigenere_planner(text: str, raw_key: str) -> CharacterStepPlanner:
    return CharacterStepPlanner(vigenere.encrypt(derive_key_stream(raw_key), text))


def additive_planner(text: str, shift: int) -> CharacterStepPlanner:
    return CharacterStepPlanner(vigenere.encrypt_additive(shift, text))


def autokey_planner(text: str, seed: int) -> CharacterStepPlanner:
    return CharacterStepPlanner(vigenere.encrypt_autokey(seed, text))


def build_planner(cipher: CipherName, text: str, key: str) -> Union[HillStepPlanner, CharacterStepPlanner]:
    """Build the step planner for one activation from raw string inputs."""
    match cipher:
        case "hill":
            return hill_planner(text, key)
        case "vigenere":
            return vigenere_planner(text, key)
        case "additive":
            return additive_planner(text, coerce_cell(key))
        case "autokey":
            return autokey_planner(text, coerce_cell(key))
        case _:
            raise ValueError(f"Unknown cipher: {cipher}")
