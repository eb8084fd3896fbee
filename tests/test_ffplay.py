import asyncio
import sys

import pytest

from module.jukebox.output import FFplayOutput
from module.jukebox.utils import PlaybackError

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts as stand-in tools")


def script(tmp_path, name, body):
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def ffprobe(tmp_path):
    return script(tmp_path, "ffprobe", "echo 12.5")


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate() and loop.time() < deadline:
        await asyncio.sleep(0.02)
    return predicate()


class TestFFplayOutput:
    """Driving stand-in ffplay / ffprobe executables."""

    async def test_load_probes_duration(self, tmp_path, ffprobe):
        output = FFplayOutput(ffplay_path=script(tmp_path, "ffplay", "exit 0"), ffprobe_path=ffprobe)

        await output.load("song.mp3")

        assert output.duration == 12.5
        assert output.current_time == 0
        assert output.ended is False

    async def test_failed_probe_leaves_duration_unknown(self, tmp_path):
        output = FFplayOutput(
            ffplay_path=script(tmp_path, "ffplay", "exit 0"),
            ffprobe_path=script(tmp_path, "ffprobe", "exit 1"),
        )

        await output.load("song.mp3")

        assert output.duration is None

    async def test_play_without_source(self, tmp_path, ffprobe):
        output = FFplayOutput(ffplay_path=script(tmp_path, "ffplay", "exit 0"), ffprobe_path=ffprobe)

        with pytest.raises(PlaybackError):
            await output.play()

    async def test_immediate_failure_raises(self, tmp_path, ffprobe):
        ffplay = script(tmp_path, "ffplay", "echo 'Invalid data found when processing input' >&2\nexit 1")
        output = FFplayOutput(ffplay_path=ffplay, ffprobe_path=ffprobe, start_timeout=1.0)
        await output.load("song.mp3")

        with pytest.raises(PlaybackError) as exc:
            await output.play()

        assert "Invalid data" in exc.value.message

    async def test_clean_exit_marks_ended(self, tmp_path, ffprobe):
        output = FFplayOutput(ffplay_path=script(tmp_path, "ffplay", "exit 0"), ffprobe_path=ffprobe, start_timeout=0.5)
        await output.load("song.mp3")

        await output.play()

        assert await wait_until(lambda: output.ended)
        assert output.current_time == 12.5
        await output.close()

    async def test_pause_and_seek_keep_position(self, tmp_path, ffprobe):
        output = FFplayOutput(ffplay_path=script(tmp_path, "ffplay", "exec sleep 5"), ffprobe_path=ffprobe, start_timeout=0.05)
        await output.load("song.mp3")
        await output.play()

        await output.pause()
        paused_at = output.current_time
        await asyncio.sleep(0.05)

        assert output.current_time == paused_at
        await output.seek(3)
        assert output.current_time == 3
        assert output.ended is False
        await output.close()

    def test_resume_position_passed_to_ffplay(self):
        output = FFplayOutput(ffplay_path="ffplay")
        output._source = "song.mp3"

        assert output._build_args(0) == ["ffplay", "-nodisp", "-autoexit", "-loglevel", "error", "song.mp3"]
        assert output._build_args(42.5)[-3:] == ["-ss", "42.500", "song.mp3"]
