from module.jukebox.metadata import ProbeResult, fallback_title, probe_audio


class TestProbe:
    """Tag parsing of uploaded files."""

    def test_unreadable_file_gives_empty_result(self, tmp_path):
        path = tmp_path / "broken.mp3"
        path.write_bytes(b"definitely not mpeg frames")

        assert probe_audio(str(path)) == ProbeResult()

    def test_missing_file_gives_empty_result(self, tmp_path):
        assert probe_audio(str(tmp_path / "missing.flac")) == ProbeResult()

    def test_fallback_title(self):
        assert fallback_title("My Song.mp3") == "My Song"
        assert fallback_title("archive.tar.flac") == "archive.tar"
        assert fallback_title("noext") == "noext"
