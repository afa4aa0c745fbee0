from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Tuple

type KeyMatrix = Tuple[Tuple[int, ...], ...]

FALLBACK_KEY_MATRIX: KeyMatrix = ((0,),)
PLACEHOLDER = "?"


@dataclass(frozen=True, slots=True)
class ParsedKeyMatrix:
    """A key matrix that passed the parse boundary, or the fallback that replaced it."""

    matrix: KeyMatrix
    is_fallback: bool = False
    reason: Optional[str] = None  # Why the fallback replaced the input.

    @property
    def size(self) -> int:
        return len(self.matrix)


@dataclass(frozen=True, slots=True)
class HillBlock:
    """One block of prepared text and every value derived from it."""

    index: int
    letters: str
    numbers: Tuple[int, ...]
    raw_sums: Tuple[int, ...]  # Row sums before the mod 26 reduction.
    encrypted: Tuple[int, ...]
    result: str


@dataclass(frozen=True, slots=True)
class HillResult:
    key_matrix: KeyMatrix
    prepared_text: str
    blocks: Tuple[HillBlock, ...] = field(default_factory=tuple)

    @property
    def block_size(self) -> int:
        return len(self.key_matrix)

    @property
    def text_blocks(self) -> Tuple[str, ...]:
        return tuple(block.letters for block in self.blocks)

    @property
    def numeric_blocks(self) -> Tuple[Tuple[int, ...], ...]:
        return tuple(block.numbers for block in self.blocks)

    @property
    def encrypted_blocks(self) -> Tuple[Tuple[int, ...], ...]:
        return tuple(block.encrypted for block in self.blocks)

    @property
    def encrypted_text(self) -> str:
        return "".join(block.result for block in self.blocks)


@dataclass(frozen=True, slots=True)
class CharStep:
    """The transformation of a single plaintext character."""

    index: int
    original: str
    key_char: str
    result: str
    calculation: str
    shift: Optional[int] = None  # None for pass-through characters.

    @property
    def is_letter(self) -> bool:
        return self.shift is not None


@dataclass(frozen=True, slots=True)
class CharResult:
    cipher: str
    plaintext: str
    key: str
    steps: Tuple[CharStep, ...] = field(default_factory=tuple)

    @property
    def ciphertext(self) -> str:
        return "".join(step.result for step in self.steps)


class HillPhase(IntEnum):
    DIVISION = 0
    NUMERIC = 1
    MULTIPLY = 2
    RESULT = 3

    @property
    def label(self) -> str:
        return HILL_PHASE_LABELS[self]


HILL_PHASE_LABELS = {
    HillPhase.DIVISION: "Text Division",
    HillPhase.NUMERIC: "Numerical Conversion",
    HillPhase.MULTIPLY: "Matrix Multiplication",
    HillPhase.RESULT: "Block Result",
}


@dataclass(frozen=True, slots=True)
class HillStepView:
    """What is visible at one Hill step. Values not yet revealed are None."""

    step_index: int
    step_count: int
    key_matrix: KeyMatrix
    prepared_text: str
    block_index: int = 0
    phase: HillPhase = HillPhase.DIVISION
    letters: str = ""
    numbers: Optional[Tuple[int, ...]] = None
    raw_sums: Optional[Tuple[int, ...]] = None
    encrypted: Optional[Tuple[int, ...]] = None
    result: Optional[str] = None
    revealed_blocks: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.step_count == 0

    @property
    def title(self) -> str:
        if self.is_empty:
            return "Nothing to encrypt"
        return f"Block {self.block_index + 1}: {self.phase.label}"


@dataclass(frozen=True, slots=True)
class CharStepView:
    """What is visible at one character step. Masked cells hold PLACEHOLDER."""

    step_index: int
    step_count: int
    cipher: str
    originals: Tuple[str, ...] = field(default_factory=tuple)
    key_chars: Tuple[str, ...] = field(default_factory=tuple)
    results: Tuple[str, ...] = field(default_factory=tuple)
    calculation: str = ""

    @property
    def is_empty(self) -> bool:
        return self.step_count == 0

    @property
    def title(self) -> str:
        if self.is_empty:
            return "Nothing to encrypt"
        return f"Character {self.step_index + 1} / {self.step_count}"


@dataclass(frozen=True, slots=True)
class PlaybackState:
    """Immutable playback position. Replaced, never mutated, by each command."""

    step_count: int
    current_step: int = 0
    is_playing: bool = False
    speed_ms: int = 1000

    def __post_init__(self):
        if self.step_count < 0:
            raise ValueError(f"step_count {self.step_count} must not be negative")
        if not (0 <= self.current_step <= self.max_step):
            raise ValueError(f"current_step {self.current_step} outside 0..{self.max_step}")
        if self.speed_ms <= 0:
            raise ValueError(f"speed_ms {self.speed_ms} must be positive")

    @property
    def max_step(self) -> int:
        return max(self.step_count - 1, 0)

    @property
    def can_step_forward(self) -> bool:
        return self.current_step < self.max_step

    @property
    def can_step_backward(self) -> bool:
        return self.current_step > 0
