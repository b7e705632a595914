import pytest

from supervisor.clock import InstantClock, WallClock, create_clock
from conftest import make_node


class FakeTime:
    """Manual time source: sleeping advances the monotonic clock."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def monotonic(self):
        return self.now


class TestInstantClock:
    def test_completes_immediately_while_running(self):
        assert InstantClock().elapse(make_node("a", duration_ms=60000), lambda: True)

    def test_does_not_complete_when_paused(self):
        assert not InstantClock().elapse(make_node("a", duration_ms=60000), lambda: False)


class TestWallClock:
    """Test suite for the sliced wall clock."""

    @pytest.fixture
    def fake_time(self):
        return FakeTime()

    @pytest.fixture
    def clock(self, fake_time):
        return WallClock(tick_ms=250, sleep=fake_time.sleep, monotonic=fake_time.monotonic)

    def test_waits_out_duration_in_ticks(self, clock, fake_time):
        node = make_node("a", duration_ms=625)

        assert clock.elapse(node, lambda: True)

        assert fake_time.sleeps == pytest.approx([0.25, 0.25, 0.125])
        assert fake_time.now == pytest.approx(0.625)

    def test_open_ended_node_completes_at_once(self, clock, fake_time):
        assert clock.elapse(make_node("a"), lambda: True)
        assert clock.elapse(make_node("b", duration_ms=0), lambda: True)
        assert fake_time.sleeps == []

    def test_interrupted_node_keeps_remaining_time(self, clock, fake_time):
        node = make_node("a", duration_ms=1000)
        checks = iter([True, True, False])

        assert not clock.elapse(node, lambda: next(checks))

        assert clock.remaining_seconds("a") == pytest.approx(0.5)

        fake_time.sleeps.clear()
        assert clock.elapse(node, lambda: True)
        assert sum(fake_time.sleeps) == pytest.approx(0.5)
        assert clock.remaining_seconds("a") is None

    def test_reset_forgets_remaining_time(self, clock):
        node = make_node("a", duration_ms=500)
        clock.elapse(node, lambda: False)
        assert clock.remaining_seconds("a") == pytest.approx(0.5)

        clock.reset()

        assert clock.remaining_seconds("a") is None

    def test_rejects_non_positive_tick(self):
        with pytest.raises(ValueError):
            WallClock(tick_ms=0)


class TestCreateClock:
    def test_known_kinds(self):
        assert isinstance(create_clock("instant"), InstantClock)
        wall = create_clock("wall", tick_ms=20)
        assert isinstance(wall, WallClock)
        assert wall.tick_seconds == pytest.approx(0.02)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            create_clock("sundial")
