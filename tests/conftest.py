from typing import List, Optional

import pytest

from module.jukebox.core import PlaybackEngine, PlaylistController, Track
from module.jukebox.core.store import MetadataStore
from module.jukebox.output import AudioOutput
from module.jukebox.utils import PlaybackError


class FakeOutput(AudioOutput):
    """In-memory AudioOutput whose position and end state are set by the test."""

    def __init__(self, duration: Optional[float] = 180.0):
        self.default_duration = duration
        self.calls: List = []
        self.source: Optional[str] = None
        self.position = 0.0
        self.is_ended = False
        self.fail_play = False
        self._duration: Optional[float] = None

    async def load(self, source: str) -> None:
        self.calls.append(("load", source))
        self.source = source
        self.position = 0.0
        self.is_ended = False
        self._duration = self.default_duration

    async def play(self) -> None:
        self.calls.append("play")
        if self.fail_play:
            raise PlaybackError("unsupported format", source=self.source)

    async def pause(self) -> None:
        self.calls.append("pause")

    async def seek(self, position: float) -> None:
        self.calls.append(("seek", position))
        self.position = position
        self.is_ended = False

    async def close(self) -> None:
        self.calls.append("close")

    @property
    def current_time(self) -> float:
        return self.position

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    @property
    def ended(self) -> bool:
        return self.is_ended

    def loads(self) -> List[str]:
        return [call[1] for call in self.calls if isinstance(call, tuple) and call[0] == "load"]


class ManualClock:
    """Monotonic clock that only moves when the test advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_track(track_id: int, title: str = None, artist: str = "Unknown", duration: int = 180) -> Track:
    name = f"track{track_id}-1700000000000-42.mp3"
    return Track(
        id=track_id,
        title=title or f"Track {track_id}",
        artist=artist,
        duration=duration,
        format="mp3",
        path=f"/srv/audio-uploads/{name}",
        filename=f"track{track_id}.mp3",
    )


def source_for(track: Track) -> str:
    return f"track://{track.id}"


@pytest.fixture
def fake_output():
    return FakeOutput()


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def tracks():
    return [make_track(1, "A"), make_track(2, "B"), make_track(3, "C")]


@pytest.fixture
async def engine(fake_output):
    engine = PlaybackEngine(fake_output, tick_interval=60)
    yield engine
    await engine.close()


@pytest.fixture
async def controller(engine, manual_clock):
    controller = PlaylistController(
        engine,
        source_resolver=source_for,
        grace_period=0,
        clock=manual_clock,
        shuffle=lambda items: list(reversed(items)),
    )
    controller.attach()
    yield controller
    controller.detach()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "audio-uploads"
    path.mkdir()
    return path


@pytest.fixture
def store(upload_dir):
    return MetadataStore(upload_dir=str(upload_dir))
