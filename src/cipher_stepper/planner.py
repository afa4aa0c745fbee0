from typing import Protocol, Tuple, Union

from cipher_stepper.models import (
    PLACEHOLDER,
    CharResult,
    CharStepView,
    HillPhase,
    HillResult,
    HillStepView,
)

HILL_PHASE_COUNT = len(HillPhase)

type StepView = Union[HillStepView, CharStepView]


class StepPlanner(Protocol):
    @property
    def step_count(self) -> int: ...

    def describe(self, step_index: int) -> StepView: ...


def _check_step_index(step_index: int, step_count: int) -> None:
    # Step 0 is always describable so an empty input still has something to render.
    if step_index == 0 and step_count == 0:
        return
    if not (0 <= step_index < step_count):
        raise IndexError(f"Step {step_index} outside 0..{step_count - 1}")


class HillStepPlanner:
    """Four phases per block: division, numeric conversion, multiplication, result."""

    def __init__(self, result: HillResult):
        self.result = result

    @property
    def step_count(self) -> int:
        return HILL_PHASE_COUNT * len(self.result.blocks)

    def locate(self, step_index: int) -> Tuple[int, HillPhase]:
        """Map a flat step index to (block index, phase)."""
        _check_step_index(step_index, self.step_count)
        block_index, phase = divmod(step_index, HILL_PHASE_COUNT)
        return block_index, HillPhase(phase)

    def describe(self, step_index: int) -> HillStepView:
        block_index, phase = self.locate(step_index)
        if self.step_count == 0:
            return HillStepView(
                step_index=0,
                step_count=0,
                key_matrix=self.result.key_matrix,
                prepared_text=self.result.prepared_text,
            )

        block = self.result.blocks[block_index]
        return HillStepView(
            step_index=step_index,
            step_count=self.step_count,
            key_matrix=self.result.key_matrix,
            prepared_text=self.result.prepared_text,
            block_index=block_index,
            phase=phase,
            letters=block.letters,
            numbers=block.numbers if phase >= HillPhase.NUMERIC else None,
            raw_sums=block.raw_sums if phase >= HillPhase.MULTIPLY else None,
            encrypted=block.encrypted if phase >= HillPhase.MULTIPLY else None,
            result=block.result if phase == HillPhase.RESULT else None,
            revealed_blocks=self.revealed_blocks(block_index, phase),
        )

    def revealed_blocks(self, block_index: int, phase: HillPhase) -> Tuple[str, ...]:
        """Finished blocks show their result; the rest are masked."""
        revealed = []
        for block in self.result.blocks:
            done = block.index < block_index or (block.index == block_index and phase == HillPhase.RESULT)
            revealed.append(block.result if done else PLACEHOLDER * len(block.result))
        return tuple(revealed)


class CharacterStepPlanner:
    """One step per plaintext character, including pass-through characters."""

    def __init__(self, result: CharResult):
        self.result = result

    @property
    def step_count(self) -> int:
        return len(self.result.steps)

    def describe(self, step_index: int) -> CharStepView:
        _check_step_index(step_index, self.step_count)
        steps = self.result.steps
        if not steps:
            return CharStepView(step_index=0, step_count=0, cipher=self.result.cipher)

        return CharStepView(
            step_index=step_index,
            step_count=self.step_count,
            cipher=self.result.cipher,
            originals=tuple(step.original for step in steps),
            key_chars=tuple(step.key_char if step.index <= step_index else PLACEHOLDER for step in steps),
            results=tuple(step.result if step.index <= step_index else PLACEHOLDER for step in steps),
            calculation=steps[step_index].calculation,
        )
