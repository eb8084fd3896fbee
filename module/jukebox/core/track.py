"""
曲目資料結構

Track 是側檔中持久化的紀錄，TrackDraft 是尚未分配 id 的上傳結果
"""

import os
from dataclasses import dataclass, asdict
from typing import Optional
from urllib.parse import quote

from ..constants import DEFAULT_ARTIST


@dataclass
class TrackDraft:
    """
    新增曲目時的草稿

    artist / duration 可省略，由 MetadataStore 補上預設值
    """
    title: str                       # 標題
    format: str                      # 格式標籤（mp3 / m4a / wav / flac）
    path: str                        # 實際儲存路徑（絕對路徑）
    filename: str                    # 上傳時的原始檔名
    artist: Optional[str] = None     # 演出者
    duration: Optional[int] = None   # 時長（秒）


@dataclass
class Track:
    """
    曲目資料結構

    欄位名稱與側檔 JSON 一致：id, title, artist, duration, format, path, filename
    """
    id: int
    title: str
    artist: str
    duration: int
    format: str
    path: str
    filename: str

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        """
        從側檔紀錄還原

        缺少欄位或型別錯誤時拋出 KeyError / TypeError / ValueError，
        由呼叫端決定如何處理
        """
        track_id = data["id"]
        duration = data.get("duration") or 0
        if isinstance(track_id, bool) or not isinstance(track_id, int) or track_id < 1:
            raise ValueError(f"無效的曲目 id: {track_id!r}")
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 0:
            raise ValueError(f"無效的時長: {duration!r}")

        return cls(
            id=track_id,
            title=str(data["title"]),
            artist=str(data.get("artist") or DEFAULT_ARTIST),
            duration=int(duration),
            format=str(data["format"]),
            path=str(data["path"]),
            filename=str(data["filename"]),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def stored_filename(self) -> str:
        """儲存路徑的檔名部分（音訊端點使用的名稱）"""
        return os.path.basename(self.path)

    @property
    def audio_path(self) -> str:
        """音訊端點的相對路徑，檔名經過百分比編碼"""
        return f"/api/audio/{quote(self.stored_filename, safe='')}"

    def format_duration(self) -> str:
        """格式化時長"""
        duration = int(self.duration) if self.duration is not None else 0

        if duration >= 3600:
            hours = duration // 3600
            minutes = (duration % 3600) // 60
            seconds = duration % 60
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        else:
            minutes = duration // 60
            seconds = duration % 60
            return f"{minutes}:{seconds:02d}"
