import json
import logging
import math
import re
import string
from typing import Any, Union
from urllib.parse import unquote

from cipher_stepper.errors import KeyStreamError
from cipher_stepper.models import FALLBACK_KEY_MATRIX, KeyMatrix, ParsedKeyMatrix

logger = logging.getLogger(__name__)

LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

type RawKeyMatrix = Union[str, list, tuple]


def coerce_cell(cell: Any) -> int:
    """Coerce one matrix cell to an integer. Anything non-numeric becomes 0.

    Strings keep their leading integer ("12abc" -> 12), floats are truncated.
    """
    if isinstance(cell, bool) or cell is None:
        return 0
    if isinstance(cell, int):
        return cell
    if isinstance(cell, float):
        return int(cell) if math.isfinite(cell) else 0
    if isinstance(cell, str):
        match = LEADING_INT_PATTERN.match(cell)
        return int(match.group(1)) if match else 0
    return 0


def shorten(text: str, limit: int = 40) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


def _decode_key_matrix(raw: RawKeyMatrix) -> Any:
    if isinstance(raw, (list, tuple)):
        return raw
    text = unquote(raw or "") or "[]"
    return json.loads(text)


def read_key_matrix(raw: RawKeyMatrix) -> ParsedKeyMatrix:
    """Parse a JSON encoded key matrix, falling back to [[0]] when it is malformed.

    Accepts the URL-encoded JSON string the visualizer receives as a query
    parameter, or an already decoded list of rows. Never raises; the fallback
    carries the reason instead.
    """
    try:
        decoded = _decode_key_matrix(raw)
    except (ValueError, TypeError) as e:
        return ParsedKeyMatrix(FALLBACK_KEY_MATRIX, is_fallback=True, reason=f"not valid JSON ({e})")
    except RecursionError:
        # json.loads gives up on deeply nested arrays.
        return ParsedKeyMatrix(FALLBACK_KEY_MATRIX, is_fallback=True, reason="nested too deeply")

    if not is_square_matrix(decoded):
        return ParsedKeyMatrix(FALLBACK_KEY_MATRIX, is_fallback=True, reason="not a non-empty square matrix")

    matrix: KeyMatrix = tuple(tuple(coerce_cell(cell) for cell in row) for row in decoded)
    return ParsedKeyMatrix(matrix)


def parse_key_matrix(raw: RawKeyMatrix) -> ParsedKeyMatrix:
    """read_key_matrix, logging a warning when the fallback is used."""
    parsed = read_key_matrix(raw)
    if parsed.is_fallback:
        shown = shorten(raw) if isinstance(raw, str) else type(raw).__name__
        logger.warning(f"Key matrix {shown!r} is {parsed.reason}; using fallback {FALLBACK_KEY_MATRIX}")
    return parsed


def is_square_matrix(value: Any) -> bool:
    if not isinstance(value, (list, tuple)) or not value:
        return False
    size = len(value)
    return all(isinstance(row, (list, tuple)) and len(row) == size for row in value)


def derive_key_stream(raw_key: str) -> str:
    """Strip everything but ASCII letters from the key and upper-case it."""
    key_stream = only_letters(raw_key).upper()
    if not key_stream:
        raise KeyStreamError(f"Key {raw_key!r} must contain at least one letter A-Z")
    return key_stream


def only_letters(text: str) -> str:
    return "".join(c for c in text if c in string.ascii_letters)


def load_text(file_path: str, encoding: str = "utf-8") -> str:
    """Load plaintext from a file, dropping a single trailing newline."""
    with open(file_path, "r", encoding=encoding) as f:
        data = f.read()
    if data.endswith("\n"):
        data = data[:-1]
    return data
