"""Step playback: a pure reducer over PlaybackState plus a clock-driven controller."""
import dataclasses
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar, Union

from cipher_stepper.errors import PlaybackClosedError
from cipher_stepper.models import PlaybackState
from cipher_stepper.planner import StepPlanner, StepView
from cipher_stepper.state_queue import SingleSlotQueue

logger = logging.getLogger(__name__)

V = TypeVar("V", bound=StepView)

MIN_SPEED_MS = 1


class Command(Enum):
    STEP_FORWARD = "step_forward"
    STEP_BACKWARD = "step_backward"
    RESET = "reset"
    PLAY = "play"
    PAUSE = "pause"
    TOGGLE_PLAY = "toggle_play"
    TICK = "tick"


@dataclass(frozen=True, slots=True)
class SetSpeed:
    speed_ms: int


type PlaybackCommand = Union[Command, SetSpeed]


def reduce(state: PlaybackState, command: PlaybackCommand) -> PlaybackState:
    """Apply one command. Never leaves current_step outside 0..max_step."""
    if isinstance(command, SetSpeed):
        if command.speed_ms < MIN_SPEED_MS:
            raise ValueError(f"Speed must be at least {MIN_SPEED_MS} ms, got {command.speed_ms}")
        return dataclasses.replace(state, speed_ms=command.speed_ms)

    match command:
        case Command.STEP_FORWARD:
            if state.can_step_forward:
                return dataclasses.replace(state, current_step=state.current_step + 1)
            return state
        case Command.STEP_BACKWARD:
            if state.can_step_backward:
                return dataclasses.replace(state, current_step=state.current_step - 1)
            return state
        case Command.RESET:
            return dataclasses.replace(state, current_step=0, is_playing=False)
        case Command.PLAY:
            if state.is_playing or state.step_count == 0:
                return state
            # Playing from the last step starts over instead of stopping at once.
            current_step = 0 if state.current_step == state.max_step else state.current_step
            return dataclasses.replace(state, current_step=current_step, is_playing=True)
        case Command.PAUSE:
            return dataclasses.replace(state, is_playing=False)
        case Command.TOGGLE_PLAY:
            return reduce(state, Command.PAUSE if state.is_playing else Command.PLAY)
        case Command.TICK:
            if not state.is_playing:
                return state
            advanced = reduce(state, Command.STEP_FORWARD)
            if advanced.current_step == advanced.max_step:
                return dataclasses.replace(advanced, is_playing=False)
            return advanced
        case _:
            raise ValueError(f"Unknown playback command: {command!r}")


class Ticker:
    """Repeating timer that calls `callback` every `interval` seconds until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self._callback = callback
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name="playback-ticker", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def join(self, timeout: Optional[float] = None) -> None:
        # A tick that stops playback cancels from the ticker thread itself.
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval):
            self._callback()


type TickerFactory = Callable[[float, Callable[[], None]], Ticker]


@dataclass(frozen=True, slots=True)
class PlaybackView(Generic[V]):
    """A playback state paired with the step view it points at."""

    state: PlaybackState
    step: V


class PlaybackController(Generic[V]):
    """Owns the playback position for one visualization session.

    Commands are applied one at a time under a lock, so a manual step and a
    clock tick are never merged. The ticker exists only while playing.
    """

    def __init__(
        self,
        planner: StepPlanner,
        *,
        speed_ms: int = 1000,
        state_queue: Optional[SingleSlotQueue[PlaybackView[V]]] = None,
        ticker_factory: TickerFactory = Ticker,
        on_finish: Optional[Callable[[], None]] = None,
    ):
        self.planner = planner
        self._state = PlaybackState(step_count=planner.step_count, speed_ms=speed_ms)
        self._state_queue = state_queue
        self._ticker_factory = ticker_factory
        self._ticker: Optional[Ticker] = None
        self._ticker_generation = 0
        self._on_finish = on_finish
        self._closed = False
        self._lock = threading.RLock()
        self._publish()

    def __enter__(self) -> "PlaybackController[V]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            return self._state

    @property
    def current_step(self) -> int:
        return self.state.current_step

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    @property
    def speed_ms(self) -> int:
        return self.state.speed_ms

    @property
    def max_step(self) -> int:
        return self.state.max_step

    @property
    def can_step_forward(self) -> bool:
        return self.state.can_step_forward

    @property
    def can_step_backward(self) -> bool:
        return self.state.can_step_backward

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def view(self) -> PlaybackView[V]:
        with self._lock:
            return PlaybackView(state=self._state, step=self.planner.describe(self._state.current_step))

    def play(self) -> PlaybackState:
        return self.dispatch(Command.PLAY)

    def pause(self) -> PlaybackState:
        return self.dispatch(Command.PAUSE)

    def toggle_play(self) -> PlaybackState:
        return self.dispatch(Command.TOGGLE_PLAY)

    def step_forward(self) -> PlaybackState:
        return self.dispatch(Command.STEP_FORWARD)

    def step_backward(self) -> PlaybackState:
        return self.dispatch(Command.STEP_BACKWARD)

    def reset(self) -> PlaybackState:
        return self.dispatch(Command.RESET)

    def set_speed(self, speed_ms: int) -> PlaybackState:
        return self.dispatch(SetSpeed(speed_ms))

    def tick(self) -> PlaybackState:
        """Advance as one clock tick would. A tick arriving after close() is dropped."""
        with self._lock:
            if self._closed:
                return self._state
            return self.dispatch(Command.TICK)

    def _tick_from(self, generation: int) -> None:
        with self._lock:
            # Ticks from a ticker that was already replaced or cancelled are stale.
            if generation != self._ticker_generation:
                return
            self.tick()

    def dispatch(self, command: PlaybackCommand) -> PlaybackState:
        with self._lock:
            if self._closed:
                raise PlaybackClosedError(f"Cannot apply {command!r}: playback is closed")

            previous = self._state
            self._state = reduce(previous, command)
            self._sync_ticker(previous, self._state)

            if self._state != previous:
                logger.debug(f"{command!r}: step {previous.current_step} -> {self._state.current_step}, playing={self._state.is_playing}")
                self._publish()

            if command is Command.TICK and previous.is_playing and not self._state.is_playing:
                logger.info(f"Playback finished at step {self._state.current_step + 1} / {self._state.step_count}")
                if self._on_finish is not None:
                    self._on_finish()

            return self._state

    def close(self) -> None:
        """Cancel any pending tick and release the view queue. Safe to call twice."""
        with self._lock:
            self._closed = True
            ticker = self._stop_ticker()
            self._state = dataclasses.replace(self._state, is_playing=False)
        # Join outside the lock; the ticker thread may be waiting on it.
        if ticker is not None:
            ticker.join()
        if self._state_queue is not None:
            self._state_queue.close()

    def _sync_ticker(self, previous: PlaybackState, current: PlaybackState) -> None:
        if not current.is_playing:
            self._stop_ticker()
        elif not previous.is_playing or previous.speed_ms != current.speed_ms:
            self._stop_ticker()
            self._start_ticker(current.speed_ms)

    def _start_ticker(self, speed_ms: int) -> None:
        generation = self._ticker_generation
        self._ticker = self._ticker_factory(speed_ms / 1000, lambda: self._tick_from(generation))
        self._ticker.start()

    def _stop_ticker(self) -> Optional[Ticker]:
        self._ticker_generation += 1
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
        return ticker

    def _publish(self) -> None:
        if self._state_queue is not None:
            self._state_queue.publish(self.view)
