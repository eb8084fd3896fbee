"""
點唱機模組

自架的音樂曲目庫與播放器，提供:
- 上傳音訊檔並自動讀取標籤
- 以 JSON 側檔保存曲目中繼資料
- HTTP API 與音訊串流
- 隨機 / 重複播放的播放清單控制
- 自動 FFmpeg 工具管理
"""

# Core
from .core.track import Track, TrackDraft
from .core.store import MetadataStore
from .core.state import PlaybackClock, format_time, progress_display
from .core.engine import PlaybackEngine
from .core.playlist import PlaylistController, RepeatMode

# Output
from .output.base import AudioOutput
from .output.ffplay import FFplayOutput

# Metadata
from .metadata.probe import probe_audio

# FFmpeg
from .ffmpeg.manager import FFToolsManager

# Server / Client
from .server.app import create_app, run_server
from .client.api import LibraryClient
from .client.sync import LibrarySync

# UI
from .ui.console import ConsoleUI

# Config
from .config import Settings

# Utils
from .utils.errors import (
    JukeboxError,
    NotFoundError,
    ValidationError,
    PlaybackError,
    PersistenceWarning,
    StartupFatalError,
)

__all__ = [
    # Core
    "Track",
    "TrackDraft",
    "MetadataStore",
    "PlaybackClock",
    "format_time",
    "progress_display",
    "PlaybackEngine",
    "PlaylistController",
    "RepeatMode",
    # Output
    "AudioOutput",
    "FFplayOutput",
    # Metadata
    "probe_audio",
    # FFmpeg
    "FFToolsManager",
    # Server / Client
    "create_app",
    "run_server",
    "LibraryClient",
    "LibrarySync",
    # UI
    "ConsoleUI",
    # Config
    "Settings",
    # Utils
    "JukeboxError",
    "NotFoundError",
    "ValidationError",
    "PlaybackError",
    "PersistenceWarning",
    "StartupFatalError",
]
