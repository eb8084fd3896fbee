# Core module
from .track import Track, TrackDraft
from .store import MetadataStore
from .state import PlaybackClock, format_time, progress_bar, progress_display
from .engine import PlaybackEngine
from .playlist import PlaylistController, RepeatMode, fisher_yates

__all__ = [
    "Track",
    "TrackDraft",
    "MetadataStore",
    "PlaybackClock",
    "format_time",
    "progress_bar",
    "progress_display",
    "PlaybackEngine",
    "PlaylistController",
    "RepeatMode",
    "fisher_yates",
]
