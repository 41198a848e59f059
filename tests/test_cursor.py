"""Tests for the bounded animation cursor."""
import pytest

from conceptviz.config import AnimationSpec
from conceptviz.cursor import BoundedCursor


@pytest.fixture
def cursor():
    return BoundedCursor(value=2, lower=0, upper=5, restart=0, interval_ms=100)


class TestConstruction:

    def test_value_is_clamped(self):
        assert BoundedCursor(value=10, lower=0, upper=5, restart=0, interval_ms=1).value == 5
        assert BoundedCursor(value=-3, lower=1, upper=5, restart=1, interval_ms=1).value == 1

    def test_restart_is_clamped(self):
        c = BoundedCursor(value=0, lower=2, upper=5, restart=0, interval_ms=1)
        assert c.restart == 2

    def test_inverted_bounds_raise(self):
        with pytest.raises(ValueError):
            BoundedCursor(value=0, lower=5, upper=1, restart=0, interval_ms=1)

    def test_interval_floor(self):
        c = BoundedCursor(value=0, lower=0, upper=1, restart=0, interval_ms=0)
        assert c.interval_ms == 1
        assert c.with_interval(250).interval_s == 0.25

    def test_from_spec(self):
        spec = AnimationSpec(start=7, restart=4, interval_ms=900, autoplay=True)
        c = BoundedCursor.from_spec(spec, 4, 9)
        assert (c.value, c.lower, c.upper, c.restart, c.playing) == (7, 4, 9, 4, True)


class TestTick:

    def test_paused_tick_is_noop(self, cursor):
        assert cursor.tick() == cursor

    def test_playing_tick_advances(self, cursor):
        assert cursor.play().tick().value == 3

    def test_wraps_to_restart(self):
        c = BoundedCursor(value=9, lower=4, upper=9, restart=4, interval_ms=1, playing=True)
        assert c.tick().value == 4
        assert c.tick().playing

    def test_full_cycle_returns_to_start(self, cursor):
        c = cursor.play()
        for _ in range(cursor.upper - cursor.lower + 1):
            c = c.tick()
        assert c.value == cursor.value


class TestManualControls:

    def test_step_clamps_and_pauses(self, cursor):
        c = cursor.play().step(10)
        assert c.value == 5 and not c.playing
        assert cursor.step(-10).value == 0

    def test_scrub_clamps_and_pauses(self, cursor):
        c = cursor.play().scrub(99)
        assert c.value == 5 and not c.playing

    def test_reset_goes_to_restart_and_pauses(self):
        c = BoundedCursor(value=8, lower=1, upper=120, restart=1, interval_ms=1, playing=True)
        r = c.reset()
        assert r.value == 1 and not r.playing

    def test_toggle(self, cursor):
        assert cursor.toggle().playing
        assert not cursor.toggle().toggle().playing
        assert cursor.play().pause() == cursor


class TestParameterDriven:

    def test_rewind_keeps_playing(self, cursor):
        c = cursor.play().rewind()
        assert c.value == 0 and c.playing

    def test_with_bounds_reclamps(self, cursor):
        c = BoundedCursor(value=60, lower=0, upper=70, restart=0, interval_ms=1, playing=True)
        shrunk = c.with_bounds(0, 28)
        assert shrunk.value == 28 and shrunk.playing

    def test_bounds_hold_through_any_sequence(self, cursor):
        c = cursor.play()
        ops = [
            lambda x: x.tick(), lambda x: x.step(3), lambda x: x.step(-7),
            lambda x: x.scrub(42), lambda x: x.play(), lambda x: x.with_bounds(1, 3),
            lambda x: x.rewind(), lambda x: x.tick(), lambda x: x.reset(),
            lambda x: x.with_bounds(0, 10), lambda x: x.scrub(-5),
        ]
        for _ in range(5):
            for op in ops:
                c = op(c)
                assert c.lower <= c.value <= c.upper
                assert c.lower <= c.restart <= c.upper
