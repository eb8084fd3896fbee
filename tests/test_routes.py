import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from module.jukebox.server import create_app
from module.jukebox.server import routes


def upload_form(*files):
    form = aiohttp.FormData()
    for filename, content_type, data in files:
        form.add_field("songs", data, filename=filename, content_type=content_type)
    return form


def audio_files(upload_dir):
    return sorted(p.name for p in upload_dir.iterdir() if not p.name.startswith("songs-metadata"))


@pytest.fixture
async def client(store):
    async with TestClient(TestServer(create_app(store))) as client:
        yield client


class TestSongRoutes:
    """Library listing, upload, rename and delete."""

    async def test_list_starts_empty(self, client):
        resp = await client.get("/api/songs")

        assert resp.status == 200
        assert await resp.json() == []

    async def test_upload_falls_back_to_filename(self, client, upload_dir):
        resp = await client.post(
            "/api/songs/upload",
            data=upload_form(("My Song.mp3", "audio/mpeg", b"not really audio")),
        )

        assert resp.status == 201
        created = await resp.json()
        assert len(created) == 1
        song = created[0]
        assert song["id"] == 1
        assert song["title"] == "My Song"
        assert song["artist"] == "Unknown"
        assert song["duration"] == 0
        assert song["format"] == "mp3"
        assert song["filename"] == "My Song.mp3"
        assert audio_files(upload_dir) == [song["path"].rsplit("/", 1)[-1]]

        listed = await (await client.get("/api/songs")).json()
        assert listed == created

    async def test_upload_multiple_files(self, client):
        resp = await client.post(
            "/api/songs/upload",
            data=upload_form(
                ("one.mp3", "audio/mpeg", b"1"),
                ("two.flac", "audio/flac", b"2"),
            ),
        )

        created = await resp.json()
        assert resp.status == 201
        assert [s["id"] for s in created] == [1, 2]
        assert [s["format"] for s in created] == ["mp3", "flac"]

    async def test_upload_rejects_disallowed_type(self, client, upload_dir):
        resp = await client.post(
            "/api/songs/upload",
            data=upload_form(
                ("good.mp3", "audio/mpeg", b"1"),
                ("notes.txt", "text/plain", b"2"),
            ),
        )

        assert resp.status == 400
        assert "Invalid file type" in (await resp.json())["message"]
        assert audio_files(upload_dir) == []
        assert await (await client.get("/api/songs")).json() == []

    async def test_upload_rejects_oversized_file(self, client, upload_dir, monkeypatch):
        monkeypatch.setattr(routes, "UPLOAD_MAX_FILE_SIZE", 8)

        resp = await client.post(
            "/api/songs/upload",
            data=upload_form(("big.mp3", "audio/mpeg", b"x" * 64)),
        )

        assert resp.status == 400
        assert audio_files(upload_dir) == []

    async def test_upload_without_files(self, client):
        form = aiohttp.FormData()
        form.add_field("other", "value")

        resp = await client.post("/api/songs/upload", data=form)

        assert resp.status == 400
        assert (await resp.json())["message"] == "No files uploaded"

    async def test_write_failure_removes_saved_files(self, client, upload_dir, monkeypatch):
        real_open = open
        opened = []

        def failing_open(path, *args, **kwargs):
            opened.append(path)
            if len(opened) == 2:
                handle = real_open(path, *args, **kwargs)
                handle.close()
                raise OSError(28, "No space left on device")
            return real_open(path, *args, **kwargs)

        monkeypatch.setattr(routes, "open", failing_open, raising=False)

        resp = await client.post(
            "/api/songs/upload",
            data=upload_form(
                ("one.mp3", "audio/mpeg", b"1"),
                ("two.mp3", "audio/mpeg", b"2"),
            ),
        )

        assert resp.status == 500
        assert len(opened) == 2
        assert audio_files(upload_dir) == []
        assert await (await client.get("/api/songs")).json() == []

    async def test_create_failure_removes_remaining_files(self, client, store, upload_dir, monkeypatch):
        real_create = store.create
        calls = []

        def flaky_create(draft):
            calls.append(draft)
            if len(calls) == 2:
                raise RuntimeError("boom")
            return real_create(draft)

        monkeypatch.setattr(store, "create", flaky_create)

        resp = await client.post(
            "/api/songs/upload",
            data=upload_form(
                ("one.mp3", "audio/mpeg", b"1"),
                ("two.mp3", "audio/mpeg", b"2"),
                ("three.mp3", "audio/mpeg", b"3"),
            ),
        )

        assert resp.status == 500
        kept = store.list_all()
        assert [t.filename for t in kept] == ["one.mp3"]
        assert audio_files(upload_dir) == [kept[0].path.rsplit("/", 1)[-1]]

    async def test_rename(self, client):
        await client.post("/api/songs/upload", data=upload_form(("a.mp3", "audio/mpeg", b"1")))

        resp = await client.patch("/api/songs/1", json={"title": "Renamed", "artist": "Someone"})

        assert resp.status == 200
        body = await resp.json()
        assert body["title"] == "Renamed"
        assert body["artist"] == "Someone"

    async def test_rename_unknown_song(self, client):
        resp = await client.patch("/api/songs/42", json={"title": "Nope"})

        assert resp.status == 404
        assert await resp.json() == {"message": "Song not found"}

    async def test_rename_requires_title(self, client):
        await client.post("/api/songs/upload", data=upload_form(("a.mp3", "audio/mpeg", b"1")))

        resp = await client.patch("/api/songs/1", json={"title": "   "})

        assert resp.status == 400
        assert await resp.json() == {"message": "Title is required"}

    async def test_invalid_id(self, client):
        resp = await client.patch("/api/songs/abc", json={"title": "X"})

        assert resp.status == 400

    async def test_delete_then_missing(self, client, upload_dir):
        await client.post("/api/songs/upload", data=upload_form(("a.mp3", "audio/mpeg", b"1")))

        resp = await client.delete("/api/songs/1")
        assert resp.status == 204
        assert audio_files(upload_dir) == []

        resp = await client.delete("/api/songs/1")
        assert resp.status == 404


class TestAudioRoute:
    """Streaming stored files."""

    async def test_serves_uploaded_file(self, client, store):
        await client.post("/api/songs/upload", data=upload_form(("song.mp3", "audio/mpeg", b"ID3-bytes")))
        track = store.get(1)

        resp = await client.get(track.audio_path)

        assert resp.status == 200
        assert await resp.read() == b"ID3-bytes"

    async def test_unknown_file(self, client):
        resp = await client.get("/api/audio/nope.mp3")

        assert resp.status == 404
        assert await resp.json() == {"message": "File not found: nope.mp3"}

    async def test_sidecar_is_not_served(self, client, store):
        await client.post("/api/songs/upload", data=upload_form(("song.mp3", "audio/mpeg", b"1")))

        resp = await client.get("/api/audio/songs-metadata.json")

        assert resp.status == 404
