"""
終端機操作介面

逐行讀取指令並交給 PlaylistController，曲目庫操作透過 LibraryClient
"""

import asyncio
import shlex
import sys
from typing import List, Optional

import aiohttp
from loguru import logger

from ..client.api import LibraryClient
from ..client.sync import LibrarySync
from ..core.playlist import PlaylistController
from ..core.state import progress_display
from ..utils.errors import JukeboxError

QUIT = object()

HELP_TEXT = """指令：
    p            播放 / 暫停
    n / b        下一首 / 上一首
    s            切換隨機
    r            切換重複模式
    seek <秒>    跳轉
    play <編號>  播放清單中的第 N 首
    ls           列出曲目
    add <路徑>   上傳音訊檔
    rm <編號>    刪除曲目
    mv <編號> <標題> [演出者]
                 重新命名曲目
    st           顯示目前狀態
    h            顯示說明
    q            離開"""


class ConsoleUI:
    """
    終端機介面

    使用方式：
        ui = ConsoleUI(controller, client, sync)
        await ui.run()
    """

    def __init__(self, controller: PlaylistController, client: LibraryClient, sync: LibrarySync):
        self.controller = controller
        self.client = client
        self.sync = sync

    # === 顯示 ===

    def render_status(self) -> str:
        """
        生成目前狀態

        例如：「▶ Song - Artist  1:23 ▓▓▓▓▓░░░░░░░░░░ 3:45  [shuffle] [repeat: all]」
        """
        status = self.controller.status()
        track = status["current_track"]
        if track is None:
            return "■ (未選擇曲目)"

        icon = "▶" if status["is_playing"] else "⏸"
        duration = status["duration"] or track.duration
        flags = []
        if status["is_shuffle"]:
            flags.append("[shuffle]")
        if status["repeat_mode"] != "none":
            flags.append(f"[repeat: {status['repeat_mode']}]")

        line = f"{icon} {track.title} - {track.artist}  {progress_display(status['current_time'], duration)}"
        if flags:
            line += "  " + " ".join(flags)
        return line

    def render_tracks(self) -> str:
        tracks = self.controller.tracks
        if not tracks:
            return "（曲目庫是空的）"

        current = self.controller.current_track
        lines: List[str] = []
        for i, track in enumerate(tracks, start=1):
            marker = "→" if current is not None and track.id == current.id else " "
            lines.append(f"{marker} {i:>3}. {track.title} - {track.artist} [{track.format_duration()}]")
        return "\n".join(lines)

    # === 指令 ===

    async def execute(self, line: str):
        """
        執行一行指令

        Returns:
            要顯示的文字；輸入 q 時返回 QUIT
        """
        try:
            parts = shlex.split(line)
        except ValueError as e:
            return f"指令格式錯誤: {e}"
        if not parts:
            return None

        command, args = parts[0].lower(), parts[1:]
        controller = self.controller

        if command in ("q", "quit", "exit"):
            return QUIT
        if command in ("h", "help"):
            return HELP_TEXT
        if command == "p":
            await controller.toggle_play()
        elif command == "n":
            await controller.next()
        elif command == "b":
            await controller.previous()
        elif command == "s":
            controller.toggle_shuffle()
        elif command == "r":
            controller.toggle_repeat()
        elif command == "seek":
            position = self._parse_number(args, float)
            if position is None:
                return "用法: seek <秒>"
            await controller.seek(position)
        elif command == "play":
            index = self._parse_number(args, int)
            tracks = controller.tracks
            if index is None or not 1 <= index <= len(tracks):
                return f"用法: play <1-{len(tracks)}>"
            await controller.play(tracks[index - 1])
        elif command == "ls":
            return self.render_tracks()
        elif command == "add":
            if not args:
                return "用法: add <路徑> [路徑...]"
            return await self._library_call(self._upload(args))
        elif command == "rm":
            index = self._parse_number(args, int)
            tracks = controller.tracks
            if index is None or not 1 <= index <= len(tracks):
                return f"用法: rm <1-{len(tracks)}>"
            return await self._library_call(self._delete(tracks[index - 1].id))
        elif command == "mv":
            tracks = controller.tracks
            index = self._parse_number(args[:1], int)
            if index is None or not 1 <= index <= len(tracks) or len(args) not in (2, 3):
                return f"用法: mv <1-{len(tracks)}> <標題> [演出者]"
            artist = args[2] if len(args) == 3 else None
            return await self._library_call(self._rename(tracks[index - 1].id, args[1], artist))
        elif command != "st":
            return f"未知的指令: {command}"

        return self.render_status()

    async def run(self) -> None:
        """逐行讀取標準輸入直到 q 或 EOF"""
        print(HELP_TEXT)
        print(self.render_status())

        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break

            result = await self.execute(line.strip())
            if result is QUIT:
                break
            if result:
                print(result)

    # === 內部方法 ===

    @staticmethod
    def _parse_number(args: List[str], kind) -> Optional[float]:
        if len(args) != 1:
            return None
        try:
            return kind(args[0])
        except ValueError:
            return None

    async def _upload(self, paths: List[str]) -> str:
        created = await self.client.upload(paths)
        await self.sync.refresh()
        return "\n".join(f"已上傳: {track.title} - {track.artist}" for track in created)

    async def _rename(self, track_id: int, title: str, artist: Optional[str]) -> str:
        track = await self.client.rename(track_id, title, artist)
        await self.sync.refresh()
        return f"已重新命名: {track.title} - {track.artist}"

    async def _delete(self, track_id: int) -> str:
        await self.client.delete(track_id)
        await self.sync.refresh()
        return f"已刪除曲目 #{track_id}"

    async def _library_call(self, coro) -> str:
        """執行曲目庫操作，失敗時顯示錯誤訊息而不中斷介面"""
        try:
            return await coro
        except JukeboxError as e:
            logger.warning(f"[ConsoleUI] 操作失敗: {e.message}")
            return f"操作失敗: {e.user_message}"
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"[ConsoleUI] 無法連線到伺服器: {e}")
            return f"操作失敗: {e}"
