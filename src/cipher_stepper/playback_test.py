import random
import threading
import time

import pytest

from cipher_stepper.algorithm import vigenere
from cipher_stepper.errors import PlaybackClosedError
from cipher_stepper.models import PlaybackState
from cipher_stepper.planner import CharacterStepPlanner
from cipher_stepper.playback import Command, PlaybackController, SetSpeed, Ticker, reduce
from cipher_stepper.state_queue import SingleSlotQueue


class FakeTicker:
    """Ticker stand-in that fires only when the test says so."""

    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.joined = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def join(self, timeout=None):
        self.joined = True

    @property
    def active(self):
        return self.started and not self.cancelled

    def fire(self):
        self.callback()


class FakeTickerFactory:
    def __init__(self):
        self.tickers = []

    def __call__(self, interval, callback):
        ticker = FakeTicker(interval, callback)
        self.tickers.append(ticker)
        return ticker

    @property
    def last(self) -> FakeTicker:
        return self.tickers[-1]

    @property
    def active(self):
        return [t for t in self.tickers if t.active]


def hello_planner() -> CharacterStepPlanner:
    return CharacterStepPlanner(vigenere.encrypt("KEY", "HELLO"))


@pytest.fixture
def factory() -> FakeTickerFactory:
    return FakeTickerFactory()


@pytest.fixture
def controller(factory) -> PlaybackController:
    controller = PlaybackController(hello_planner(), speed_ms=500, ticker_factory=factory)
    yield controller
    controller.close()


class TestReduce:
    """Test suite for the pure playback reducer"""

    def test_step_forward_stops_at_max(self):
        state = PlaybackState(step_count=3, current_step=2)
        assert reduce(state, Command.STEP_FORWARD) == state

    def test_step_backward_stops_at_zero(self):
        state = PlaybackState(step_count=3)
        assert reduce(state, Command.STEP_BACKWARD) == state

    def test_step_round_trip(self):
        state = PlaybackState(step_count=3)
        forward = reduce(state, Command.STEP_FORWARD)
        assert forward.current_step == 1
        assert reduce(forward, Command.STEP_BACKWARD).current_step == 0

    def test_reset(self):
        """Reset returns to step 0 and stops playback"""
        state = PlaybackState(step_count=5, current_step=3, is_playing=True)
        assert reduce(state, Command.RESET) == PlaybackState(step_count=5)

    def test_play_from_last_step_restarts(self):
        state = PlaybackState(step_count=4, current_step=3)
        played = reduce(state, Command.PLAY)
        assert played.is_playing
        assert played.current_step == 0

    def test_play_keeps_position(self):
        played = reduce(PlaybackState(step_count=4, current_step=1), Command.PLAY)
        assert played.current_step == 1
        assert played.is_playing

    def test_tick_to_end_pauses(self):
        """The tick that lands on the last step also stops playback"""
        state = PlaybackState(step_count=3, current_step=1, is_playing=True)
        ticked = reduce(state, Command.TICK)
        assert ticked.current_step == 2
        assert not ticked.is_playing

    def test_tick_while_paused(self):
        state = PlaybackState(step_count=3, current_step=1)
        assert reduce(state, Command.TICK) == state

    def test_toggle(self):
        state = PlaybackState(step_count=3)
        playing = reduce(state, Command.TOGGLE_PLAY)
        assert playing.is_playing
        assert not reduce(playing, Command.TOGGLE_PLAY).is_playing

    @pytest.mark.parametrize("command", list(Command))
    def test_empty_input_is_a_no_op(self, command):
        """With no steps, every command leaves the position at 0 and playback stopped"""
        state = reduce(PlaybackState(step_count=0), command)
        assert state.current_step == 0
        assert not state.is_playing

    def test_set_speed(self):
        assert reduce(PlaybackState(step_count=1), SetSpeed(250)).speed_ms == 250

    @pytest.mark.parametrize("speed_ms", [0, -100])
    def test_set_speed_rejects_non_positive(self, speed_ms):
        with pytest.raises(ValueError):
            reduce(PlaybackState(step_count=1), SetSpeed(speed_ms))

    def test_invalid_state_rejected(self):
        with pytest.raises(ValueError):
            PlaybackState(step_count=3, current_step=3)

    def test_random_commands_stay_in_range(self):
        """Any command sequence keeps the position within 0..max_step"""
        rng = random.Random(42)
        commands = list(Command)
        for step_count in (0, 1, 2, 7):
            state = PlaybackState(step_count=step_count)
            for _ in range(500):
                state = reduce(state, rng.choice(commands))
                assert 0 <= state.current_step <= state.max_step
                if step_count == 0:
                    assert not state.is_playing


class TestPlaybackController:
    """Test suite for the clock-driven playback controller"""

    def test_initial_state(self, controller):
        assert controller.current_step == 0
        assert not controller.is_playing
        assert controller.max_step == 4
        assert controller.can_step_forward
        assert not controller.can_step_backward

    def test_play_starts_ticker(self, controller, factory):
        """Play creates a ticker at the configured speed"""
        controller.play()
        assert controller.is_playing
        assert factory.last.started
        assert factory.last.interval == 0.5

    def test_pause_cancels_ticker(self, controller, factory):
        controller.play()
        controller.pause()
        assert factory.last.cancelled
        assert factory.active == []

    def test_tick_advances(self, controller, factory):
        controller.play()
        factory.last.fire()
        factory.last.fire()
        assert controller.current_step == 2
        assert controller.is_playing

    def test_reaching_end_stops_and_finishes(self, factory):
        """The last tick cancels the ticker and calls on_finish once"""
        finished = []
        controller = PlaybackController(hello_planner(), ticker_factory=factory, on_finish=lambda: finished.append(True))
        controller.play()
        ticker = factory.last
        for _ in range(10):
            ticker.fire()
        assert controller.current_step == 4
        assert not controller.is_playing
        assert ticker.cancelled
        assert finished == [True]
        controller.close()

    def test_pause_does_not_call_on_finish(self, factory):
        finished = []
        controller = PlaybackController(hello_planner(), ticker_factory=factory, on_finish=lambda: finished.append(True))
        controller.play()
        controller.pause()
        assert finished == []
        controller.close()

    def test_reset_while_playing(self, controller, factory):
        """Reset while playing stops the clock and goes back to the start"""
        controller.play()
        factory.last.fire()
        controller.reset()
        assert controller.current_step == 0
        assert not controller.is_playing
        assert factory.active == []

    def test_speed_change_restarts_ticker(self, controller, factory):
        controller.play()
        first = factory.last
        controller.set_speed(100)
        assert first.cancelled
        assert factory.last is not first
        assert factory.last.interval == 0.1
        assert len(factory.active) == 1

    def test_speed_change_while_paused(self, controller, factory):
        controller.set_speed(100)
        assert controller.speed_ms == 100
        assert factory.tickers == []

    def test_stale_tick_ignored(self, controller, factory):
        """A tick from a cancelled ticker never advances the position"""
        controller.play()
        stale = factory.last
        controller.pause()
        stale.fire()
        assert controller.current_step == 0

    def test_stale_tick_after_restart_ignored(self, controller, factory):
        controller.play()
        stale = factory.last
        controller.set_speed(200)
        stale.fire()
        assert controller.current_step == 0
        factory.last.fire()
        assert controller.current_step == 1

    def test_manual_step_and_tick_both_apply(self, controller, factory):
        controller.play()
        controller.step_forward()
        factory.last.fire()
        assert controller.current_step == 2

    def test_play_with_no_steps(self, factory):
        controller = PlaybackController(CharacterStepPlanner(vigenere.encrypt("KEY", "")), ticker_factory=factory)
        controller.play()
        assert not controller.is_playing
        assert factory.tickers == []
        controller.close()

    def test_close_cancels_and_joins(self, factory):
        state_queue = SingleSlotQueue()
        controller = PlaybackController(hello_planner(), ticker_factory=factory, state_queue=state_queue)
        controller.play()
        ticker = factory.last
        controller.close()
        assert ticker.cancelled
        assert ticker.joined
        assert controller.closed
        assert not controller.is_playing
        assert state_queue.closed

    def test_close_twice(self, controller):
        controller.close()
        controller.close()
        assert controller.closed

    def test_commands_after_close_raise(self, controller):
        controller.close()
        with pytest.raises(PlaybackClosedError):
            controller.step_forward()

    def test_tick_after_close_dropped(self, controller, factory):
        controller.play()
        ticker = factory.last
        controller.close()
        ticker.fire()
        assert controller.tick().current_step == 0

    def test_context_manager_closes_on_error(self, factory):
        with pytest.raises(RuntimeError):
            with PlaybackController(hello_planner(), ticker_factory=factory) as controller:
                controller.play()
                raise RuntimeError("boom")
        assert controller.closed
        assert factory.last.cancelled

    def test_publishes_views(self, factory):
        """Each state change publishes a view pointing at the current step"""
        state_queue = SingleSlotQueue()
        controller = PlaybackController(hello_planner(), ticker_factory=factory, state_queue=state_queue)
        assert state_queue.get(timeout=1).state.current_step == 0
        controller.step_forward()
        view = state_queue.get(timeout=1)
        assert view.state.current_step == 1
        assert view.step.results[:2] == ("R", "I")
        controller.close()

    def test_unchanged_state_not_published(self, factory):
        state_queue = SingleSlotQueue()
        controller = PlaybackController(hello_planner(), ticker_factory=factory, state_queue=state_queue)
        published = state_queue.published
        controller.step_backward()
        assert state_queue.published == published
        controller.close()


class TestTicker:
    """Test suite for the threaded ticker"""

    def test_fires_until_cancelled(self):
        """No callback runs once cancel() and join() return"""
        fired = threading.Event()
        calls = []

        def callback():
            calls.append(True)
            fired.set()

        ticker = Ticker(0.001, callback)
        ticker.start()
        assert fired.wait(timeout=5)
        ticker.cancel()
        ticker.join(timeout=5)
        count = len(calls)
        time.sleep(0.05)
        assert len(calls) == count

    def test_real_playback_runs_to_the_end(self):
        """A real clock plays every step and then stops"""
        finished = threading.Event()
        controller = PlaybackController(hello_planner(), speed_ms=5, on_finish=finished.set)
        controller.play()
        assert finished.wait(timeout=5)
        assert controller.current_step == controller.max_step
        assert not controller.is_playing
        controller.close()
