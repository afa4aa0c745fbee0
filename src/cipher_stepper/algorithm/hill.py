from functools import lru_cache
from typing import List, Sequence, Tuple

from cipher_stepper.errors import KeyMatrixError
from cipher_stepper.keys import only_letters
from cipher_stepper.models import HillBlock, HillResult, KeyMatrix

ALPHABET_SIZE = 26
FILLER_LETTER = "X"


def letter_to_number(letter: str) -> int:
    return ord(letter) - ord("A")


def number_to_letter(number: int) -> str:
    return chr(number % ALPHABET_SIZE + ord("A"))


def prepare_text(plaintext: str, block_size: int) -> str:
    """Keep only letters, upper-case them, and pad with X to a whole number of blocks."""
    prepared = only_letters(plaintext).upper()
    while len(prepared) % block_size != 0:
        prepared += FILLER_LETTER
    return prepared


def split_blocks(prepared: str, block_size: int) -> List[str]:
    return [prepared[i:i + block_size] for i in range(0, len(prepared), block_size)]


def row_sums(key_matrix: KeyMatrix, numbers: Sequence[int]) -> Tuple[int, ...]:
    """Multiply the key matrix by a column vector without reducing."""
    size = len(key_matrix)
    return tuple(sum(key_matrix[i][j] * numbers[j] for j in range(size)) for i in range(size))


def multiply(key_matrix: KeyMatrix, numbers: Sequence[int]) -> Tuple[int, ...]:
    # Python's % is floor-mod, so negative sums still land in 0..25.
    return tuple(total % ALPHABET_SIZE for total in row_sums(key_matrix, numbers))


def validate_key_matrix(key_matrix: KeyMatrix) -> None:
    size = len(key_matrix)
    if size == 0:
        raise KeyMatrixError("Key matrix must have at least one row")
    for i, row in enumerate(key_matrix):
        if len(row) != size:
            raise KeyMatrixError(f"Key matrix row {i} has {len(row)} entries, expected {size}")


def encrypt(key_matrix: Sequence[Sequence[int]], plaintext: str) -> HillResult:
    """Encrypt plaintext with the Hill cipher, keeping every intermediate value.

    The key matrix must already be square; run raw input through
    keys.parse_key_matrix first.
    """
    matrix = tuple(tuple(row) for row in key_matrix)
    validate_key_matrix(matrix)
    return _encrypt(matrix, plaintext)


@lru_cache(maxsize=128)
def _encrypt(key_matrix: KeyMatrix, plaintext: str) -> HillResult:
    block_size = len(key_matrix)
    prepared = prepare_text(plaintext, block_size)

    blocks = []
    for block_index, letters in enumerate(split_blocks(prepared, block_size)):
        numbers = tuple(letter_to_number(letter) for letter in letters)
        raw_sums = row_sums(key_matrix, numbers)
        encrypted = tuple(total % ALPHABET_SIZE for total in raw_sums)
        blocks.append(HillBlock(
            index=block_index,
            letters=letters,
            numbers=numbers,
            raw_sums=raw_sums,
            encrypted=encrypted,
            result="".join(number_to_letter(n) for n in encrypted),
        ))

    return HillResult(key_matrix=key_matrix, prepared_text=prepared, blocks=tuple(blocks))
