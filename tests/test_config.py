from module.jukebox.config import Settings, env_flag


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("JUKEBOX_HOST", "JUKEBOX_PORT", "JUKEBOX_UPLOAD_DIR", "JUKEBOX_SERVER_URL",
                     "JUKEBOX_FFPLAY", "JUKEBOX_FFPROBE", "DEBUG"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.host == "0.0.0.0"
        assert settings.port == 5000
        assert settings.upload_dir == "./audio-uploads"
        assert settings.server_url == "http://127.0.0.1:5000"
        assert settings.ffplay_path is None
        assert settings.debug is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("JUKEBOX_PORT", "8080")
        monkeypatch.setenv("JUKEBOX_SERVER_URL", "http://music.local:8080/")
        monkeypatch.setenv("JUKEBOX_FFPLAY", "/opt/ffmpeg/ffplay")
        monkeypatch.setenv("DEBUG", "yes")

        settings = Settings.from_env()

        assert settings.port == 8080
        assert settings.server_url == "http://music.local:8080"
        assert settings.ffplay_path == "/opt/ffmpeg/ffplay"
        assert settings.debug is True

    def test_invalid_port_falls_back(self, monkeypatch):
        monkeypatch.setenv("JUKEBOX_PORT", "not-a-port")

        assert Settings.from_env().port == 5000

    def test_env_flag(self, monkeypatch):
        monkeypatch.setenv("FLAG_ON", "TRUE")
        monkeypatch.setenv("FLAG_OFF", "0")
        monkeypatch.delenv("FLAG_MISSING", raising=False)

        assert env_flag("FLAG_ON") is True
        assert env_flag("FLAG_OFF") is False
        assert env_flag("FLAG_MISSING", default=True) is True
