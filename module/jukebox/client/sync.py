"""
曲目庫同步

定期向伺服器取得曲目清單，有變動時以新清單取代控制器的基礎清單
"""

import asyncio
from typing import List, Optional, Tuple

import aiohttp
from loguru import logger

from .api import LibraryClient
from ..constants import LIBRARY_REFRESH_INTERVAL
from ..core.playlist import PlaylistController
from ..core.track import Track
from ..utils.errors import JukeboxError


def _fingerprint(tracks: List[Track]) -> Tuple:
    return tuple((t.id, t.title, t.artist, t.path) for t in tracks)


class LibrarySync:
    """
    曲目庫同步器

    使用方式：
        sync = LibrarySync(client, controller)
        await sync.refresh()   # 立即同步一次
        sync.start()           # 背景定期同步
        ...
        await sync.stop()
    """

    def __init__(
        self,
        client: LibraryClient,
        controller: PlaylistController,
        interval: float = LIBRARY_REFRESH_INTERVAL,
    ):
        self.client = client
        self.controller = controller
        self.interval = interval

        self._fingerprint: Optional[Tuple] = None
        self._task: Optional[asyncio.Task] = None

    async def refresh(self) -> bool:
        """
        同步一次

        Returns:
            清單是否有變動（伺服器無法連線時返回 False）
        """
        try:
            tracks = await self.client.list_tracks()
        except (aiohttp.ClientError, asyncio.TimeoutError, JukeboxError) as e:
            logger.warning(f"[LibrarySync] 無法取得曲目清單: {e}")
            return False

        fingerprint = _fingerprint(tracks)
        if fingerprint == self._fingerprint:
            return False

        self._fingerprint = fingerprint
        logger.info(f"[LibrarySync] 曲目清單已更新: {len(tracks)} 首")
        await self.controller.set_tracks(tracks)
        return True

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="library_sync")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.refresh()
