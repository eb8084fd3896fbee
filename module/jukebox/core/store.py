"""
曲目中繼資料儲存

策略：
- 記憶體中以 id 為鍵保存所有曲目（保持插入順序）
- 每次變更都完整重寫 JSON 側檔 {"songs": [...], "nextId": n}
- 寫入採「暫存檔 + 取代」確保原子性
- 啟動時只保留實體檔案仍存在的紀錄
- id 計數器只增不減，刪除後也不重複使用
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional
from loguru import logger

from .track import Track, TrackDraft
from ..constants import ALLOWED_FORMATS, DEFAULT_ARTIST, SIDECAR_FILENAME
from ..utils.errors import (
    NotFoundError,
    PersistenceWarning,
    StartupFatalError,
    ValidationError,
)


class MetadataStore:
    """
    曲目中繼資料的唯一權威來源

    使用方式：
        store = MetadataStore(upload_dir="./audio-uploads")

        track = store.create(TrackDraft(title="Song", format="mp3", path=..., filename=...))
        store.rename(track.id, "New Title")
        store.delete(track.id)
    """

    def __init__(self, upload_dir: str, sidecar_name: str = SIDECAR_FILENAME):
        """
        初始化儲存並載入側檔

        Args:
            upload_dir: 音訊檔與側檔所在目錄
            sidecar_name: 側檔檔名

        Raises:
            StartupFatalError: 無法建立儲存目錄
        """
        self.upload_dir = Path(upload_dir).resolve()
        self.sidecar_path = self.upload_dir / sidecar_name

        self._tracks: Dict[int, Track] = {}
        self._next_id: int = 1

        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.critical(f"[MetadataStore] 無法建立儲存目錄 {self.upload_dir}: {e}")
            raise StartupFatalError(str(e), path=str(self.upload_dir))

        self._load()

    # === 屬性 ===

    @property
    def next_id(self) -> int:
        """下一個要分配的 id"""
        return self._next_id

    def __len__(self) -> int:
        return len(self._tracks)

    # === 查詢 ===

    def list_all(self) -> List[Track]:
        """取得所有曲目（依插入順序）"""
        return list(self._tracks.values())

    def get(self, track_id: int) -> Optional[Track]:
        """取得指定 id 的曲目，找不到則返回 None"""
        return self._tracks.get(track_id)

    # === 變更 ===

    def create(self, draft: TrackDraft) -> Track:
        """
        新增曲目

        Raises:
            ValidationError: 標題為空、格式不支援或時長為負
        """
        title = (draft.title or "").strip()
        if not title:
            raise ValidationError("Title is required")

        fmt = (draft.format or "").lower()
        if fmt not in ALLOWED_FORMATS:
            raise ValidationError(
                f"Invalid file type. Only {', '.join(f.upper() for f in ALLOWED_FORMATS)} are allowed."
            )

        duration = draft.duration or 0
        if duration < 0:
            raise ValidationError("Duration must not be negative")

        track = Track(
            id=self._next_id,
            title=title,
            artist=draft.artist or DEFAULT_ARTIST,
            duration=int(duration),
            format=fmt,
            path=str(draft.path),
            filename=draft.filename,
        )
        self._next_id += 1
        self._tracks[track.id] = track

        logger.info(f"[MetadataStore] 已新增曲目 #{track.id}: {track.title}")
        self._save()
        return track

    def rename(self, track_id: int, title: str, artist: Optional[str] = None) -> Track:
        """
        重新命名曲目

        Args:
            track_id: 曲目 id
            title: 新標題（不可為空）
            artist: 新演出者，省略則保留原值

        Raises:
            NotFoundError: 找不到曲目
            ValidationError: 標題為空
        """
        track = self._tracks.get(track_id)
        if track is None:
            raise NotFoundError(f"曲目不存在: {track_id}", track_id=track_id)

        new_title = (title or "").strip()
        if not new_title:
            raise ValidationError("Title is required")

        track.title = new_title
        if artist:
            track.artist = artist

        logger.info(f"[MetadataStore] 已重新命名曲目 #{track_id}: {track.title} / {track.artist}")
        self._save()
        return track

    def delete(self, track_id: int) -> bool:
        """
        刪除曲目與其實體檔案

        實體檔案已不存在視為已刪除，不算錯誤

        Returns:
            是否成功刪除（找不到曲目或無法刪除檔案時返回 False）
        """
        track = self._tracks.get(track_id)
        if track is None:
            logger.debug(f"[MetadataStore] 刪除失敗：找不到曲目 #{track_id}")
            return False

        try:
            Path(track.path).unlink()
        except FileNotFoundError:
            logger.debug(f"[MetadataStore] 實體檔案已不存在: {track.path}")
        except OSError as e:
            logger.error(f"[MetadataStore] 無法刪除檔案 {track.path}: {e}")
            return False

        del self._tracks[track_id]

        logger.info(f"[MetadataStore] 已刪除曲目 #{track_id}: {track.title}")
        self._save()
        return True

    # === 持久化 ===

    def _load(self) -> None:
        """
        載入側檔

        任何解析失敗都會重置為空的儲存（計數器 = 1）
        """
        if not self.sidecar_path.exists():
            logger.info(f"[MetadataStore] 側檔不存在，使用空的儲存: {self.sidecar_path}")
            return

        try:
            data = json.loads(self.sidecar_path.read_text(encoding="utf-8"))
            records = [Track.from_dict(item) for item in data["songs"]]
            next_id = data["nextId"]
            if isinstance(next_id, bool) or not isinstance(next_id, int):
                raise ValueError(f"無效的 nextId: {next_id!r}")
        except (OSError, ValueError, KeyError, TypeError) as e:
            warning = PersistenceWarning(f"側檔解析失敗: {e}", path=str(self.sidecar_path))
            logger.warning(f"[MetadataStore] {warning}，重置為空的儲存")
            self._tracks.clear()
            self._next_id = 1
            return

        self._tracks.clear()
        dropped = 0
        for track in records:
            if os.path.exists(track.path):
                self._tracks[track.id] = track
            else:
                dropped += 1
                logger.debug(f"[MetadataStore] 實體檔案遺失，略過 #{track.id}: {track.path}")

        # 計數器以側檔為準，但不得小於任何曾出現過的 id
        highest = max((track.id for track in records), default=0)
        self._next_id = max(next_id, highest + 1, 1)

        logger.info(
            f"[MetadataStore] 已載入 {len(self._tracks)} 首曲目"
            f"（略過 {dropped} 首），nextId={self._next_id}"
        )

    def _save(self) -> bool:
        """
        完整重寫側檔（原子性）

        Returns:
            是否寫入成功；失敗只記錄警告，記憶體狀態維持不變
        """
        payload = {
            "songs": [track.to_dict() for track in self._tracks.values()],
            "nextId": self._next_id,
        }

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.upload_dir,
                prefix=f".{self.sidecar_path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.sidecar_path)
        except OSError as e:
            warning = PersistenceWarning(f"側檔寫入失敗: {e}", path=str(self.sidecar_path))
            logger.warning(f"[MetadataStore] {warning}")
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            return False

        logger.debug(f"[MetadataStore] 已儲存 {len(self._tracks)} 首曲目到側檔")
        return True
