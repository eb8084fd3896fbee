import pytest
from aiohttp.test_utils import TestServer

from module.jukebox.client import LibraryClient, LibrarySync
from module.jukebox.server import create_app
from module.jukebox.utils import NotFoundError, ValidationError


@pytest.fixture
async def server(store):
    async with TestServer(create_app(store)) as server:
        yield server


@pytest.fixture
async def library(server):
    async with LibraryClient(str(server.make_url("/"))) as client:
        yield client


@pytest.fixture
def song_file(tmp_path):
    path = tmp_path / "Road Trip.mp3"
    path.write_bytes(b"not really audio")
    return path


class TestLibraryClient:
    """HTTP client against a live test server."""

    async def test_upload_and_list(self, library, song_file):
        created = await library.upload([str(song_file)])

        assert [t.title for t in created] == ["Road Trip"]
        listed = await library.list_tracks()
        assert [t.id for t in listed] == [created[0].id]

    async def test_audio_url_is_encoded(self, library, song_file):
        created = await library.upload([str(song_file)])

        url = library.audio_url(created[0])

        assert url.startswith(library.base_url + "/api/audio/Road%20Trip-")
        async with library.session.get(url) as resp:
            assert resp.status == 200
            assert await resp.read() == b"not really audio"

    async def test_rename(self, library, song_file):
        created = await library.upload([str(song_file)])

        renamed = await library.rename(created[0].id, "Highway", artist="Band")

        assert renamed.title == "Highway"
        assert renamed.artist == "Band"

    async def test_errors_are_mapped(self, library, song_file):
        created = await library.upload([str(song_file)])

        with pytest.raises(ValidationError):
            await library.rename(created[0].id, "")

        await library.delete(created[0].id)
        with pytest.raises(NotFoundError):
            await library.delete(created[0].id)

    async def test_upload_rejects_unknown_extension(self, library, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        with pytest.raises(ValidationError):
            await library.upload([str(path)])


class TestLibrarySync:
    """Pushing server changes into the playlist controller."""

    async def test_refresh_only_reports_changes(self, library, controller, song_file):
        sync = LibrarySync(library, controller, interval=60)

        assert await sync.refresh() is True
        assert controller.tracks == []
        assert await sync.refresh() is False

        await library.upload([str(song_file)])
        assert await sync.refresh() is True
        assert [t.title for t in controller.tracks] == ["Road Trip"]

    async def test_refresh_survives_unreachable_server(self, controller):
        async with LibraryClient("http://127.0.0.1:9") as client:
            sync = LibrarySync(client, controller, interval=60)

            assert await sync.refresh() is False

    async def test_start_and_stop(self, library, controller):
        sync = LibrarySync(library, controller, interval=60)

        sync.start()
        await sync.stop()

        assert sync._task is None
