from module.jukebox.core.state import PlaybackClock, format_time, progress_bar, progress_display

from conftest import ManualClock


class TestPlaybackClock:
    """Timestamp-based position tracking."""

    def setup_method(self):
        self.now = ManualClock(start=0.0)
        self.clock = PlaybackClock(_time_func=self.now)
        self.clock.set_duration(100.0)

    def test_position_advances_while_running(self):
        self.clock.start()
        self.now.advance(12.5)

        assert self.clock.position == 12.5

    def test_pause_freezes_position(self):
        self.clock.start()
        self.now.advance(10)
        self.clock.pause()
        self.now.advance(30)

        assert self.clock.position == 10

    def test_seek_while_running(self):
        self.clock.start()
        self.now.advance(10)
        self.clock.seek(50)
        self.now.advance(5)

        assert self.clock.position == 55

    def test_position_clamped_to_duration(self):
        self.clock.start()
        self.now.advance(500)

        assert self.clock.position == 100

    def test_reset(self):
        self.clock.start()
        self.now.advance(20)
        self.clock.reset()

        assert self.clock.is_running is False
        assert self.clock.position == 0


class TestFormatting:
    """Time and progress bar rendering."""

    def test_format_time(self):
        assert format_time(None) == "0:00"
        assert format_time(65) == "1:05"
        assert format_time(3725) == "1:02:05"

    def test_progress_bar(self):
        assert progress_bar(0, 100) == "░" * 15
        assert progress_bar(100, 100) == "▓" * 15
        assert progress_bar(50, None) == "░" * 15

    def test_progress_display(self):
        assert progress_display(83, 225) == "1:23 ▓▓▓▓▓░░░░░░░░░░ 3:45"
