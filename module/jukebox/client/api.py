"""
曲目庫 HTTP 用戶端

包裝伺服器的 /api 端點，並把 4xx 回應轉回對應的錯誤類別
"""

import os
from pathlib import Path
from typing import List, Optional, Sequence

import aiohttp
from loguru import logger

from ..constants import ALLOWED_MIME_TYPES, HTTP_TIMEOUT, UPLOAD_FIELD_NAME
from ..core.track import Track
from ..utils.decorators import log_operation
from ..utils.errors import JukeboxError, NotFoundError, ValidationError

# 副檔名 → 上傳時使用的 MIME 類型
EXTENSION_MIME_TYPES = {fmt: mime for mime, fmt in reversed(list(ALLOWED_MIME_TYPES.items()))}


class LibraryClient:
    """
    曲目庫用戶端

    使用方式：
        async with LibraryClient("http://127.0.0.1:5000") as client:
            tracks = await client.list_tracks()
            url = client.audio_url(tracks[0])
    """

    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None):
        """
        Args:
            base_url: 伺服器位址，例如 http://127.0.0.1:5000
            session: 外部提供的 session（不會由本類別關閉）
        """
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "LibraryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    # === 端點 ===

    def audio_url(self, track: Track) -> str:
        """曲目的串流網址（檔名經過百分比編碼）"""
        return f"{self.base_url}{track.audio_path}"

    async def list_tracks(self) -> List[Track]:
        async with self.session.get(f"{self.base_url}/api/songs") as resp:
            await self._raise_for_status(resp)
            data = await resp.json()
        return [Track.from_dict(item) for item in data]

    @log_operation("上傳曲目")
    async def upload(self, paths: Sequence[str]) -> List[Track]:
        """
        上傳音訊檔

        Raises:
            ValidationError: 伺服器拒絕（無檔案、類型不允許、檔案過大）
        """
        form = aiohttp.FormData()
        handles = []
        try:
            for path in paths:
                ext = Path(path).suffix.lower().lstrip(".")
                content_type = EXTENSION_MIME_TYPES.get(ext, "application/octet-stream")
                handle = open(path, "rb")
                handles.append(handle)
                form.add_field(
                    UPLOAD_FIELD_NAME,
                    handle,
                    filename=os.path.basename(path),
                    content_type=content_type,
                )

            async with self.session.post(f"{self.base_url}/api/songs/upload", data=form) as resp:
                await self._raise_for_status(resp)
                data = await resp.json()
        finally:
            for handle in handles:
                handle.close()

        return [Track.from_dict(item) for item in data]

    @log_operation("重新命名曲目")
    async def rename(self, track_id: int, title: str, artist: Optional[str] = None) -> Track:
        payload = {"title": title}
        if artist is not None:
            payload["artist"] = artist

        async with self.session.patch(f"{self.base_url}/api/songs/{track_id}", json=payload) as resp:
            await self._raise_for_status(resp)
            return Track.from_dict(await resp.json())

    @log_operation("刪除曲目")
    async def delete(self, track_id: int) -> None:
        async with self.session.delete(f"{self.base_url}/api/songs/{track_id}") as resp:
            await self._raise_for_status(resp)

    # === 內部方法 ===

    @staticmethod
    async def _raise_for_status(resp: aiohttp.ClientResponse) -> None:
        if resp.status < 400:
            return

        try:
            body = await resp.json()
            message = body.get("message") if isinstance(body, dict) else None
        except (aiohttp.ContentTypeError, ValueError):
            message = None
        message = message or resp.reason or f"HTTP {resp.status}"

        logger.debug(f"[LibraryClient] {resp.method} {resp.url} → {resp.status}: {message}")

        if resp.status == 404:
            raise NotFoundError(message)
        if resp.status == 400:
            raise ValidationError(message)
        raise JukeboxError(f"HTTP {resp.status}: {message}", user_message=message)
