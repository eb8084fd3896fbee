"""
ffplay 音訊輸出

使用 asyncio.create_subprocess_exec 控制 ffplay：
- 完全不阻塞事件循環
- 暫停時結束程序並記住位置，恢復時以 -ss 從該位置重新啟動
- 跳轉時若正在播放則重新啟動程序
- 時長透過 ffprobe 取得
- 程序自行結束（returncode 0）視為自然播放完畢
"""

import asyncio
from typing import List, Optional
from loguru import logger

from .base import AudioOutput
from ..core.state import PlaybackClock
from ..constants import PLAY_START_TIMEOUT
from ..utils.errors import PlaybackError


class FFplayOutput(AudioOutput):
    """
    以 ffplay 子程序發聲的音訊輸出

    使用方式：
        output = FFplayOutput(ffplay_path="ffplay", ffprobe_path="ffprobe")
        await output.load("http://127.0.0.1:5000/api/audio/song.mp3")
        await output.play()
    """

    def __init__(
        self,
        ffplay_path: str = "ffplay",
        ffprobe_path: Optional[str] = "ffprobe",
        probe_timeout: float = 10,
        start_timeout: float = PLAY_START_TIMEOUT,
    ):
        """
        初始化 ffplay 輸出

        Args:
            ffplay_path: ffplay 執行檔路徑
            ffprobe_path: ffprobe 執行檔路徑（None 則不探測時長）
            probe_timeout: ffprobe 超時時間（秒）
            start_timeout: 等待啟動失敗的時間（秒）
        """
        self.ffplay_path = ffplay_path
        self.ffprobe_path = ffprobe_path
        self.probe_timeout = probe_timeout
        self.start_timeout = start_timeout

        self._source: Optional[str] = None
        self._clock = PlaybackClock()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._ended = False

        logger.debug(f"FFplayOutput 初始化: ffplay={ffplay_path}, ffprobe={ffprobe_path}")

    # === 屬性 ===

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def current_time(self) -> float:
        return self._clock.position

    @property
    def duration(self) -> Optional[float]:
        return self._clock.duration

    @property
    def ended(self) -> bool:
        return self._ended

    # === 播放控制 ===

    async def load(self, source: str) -> None:
        await self._terminate()
        self._source = source
        self._ended = False
        self._clock.reset()
        self._clock.set_duration(await self._probe_duration(source))
        logger.debug(f"已載入來源: {source} (duration={self._clock.duration})")

    async def play(self) -> None:
        if not self._source:
            raise PlaybackError("尚未載入來源")

        if self._process and self._process.returncode is None:
            return

        if self._ended:
            # 已播放完畢，從頭開始
            self._clock.reset()
            self._ended = False

        await self._spawn(self._clock.position)
        self._clock.start()

    async def pause(self) -> None:
        self._clock.pause()
        await self._terminate()

    async def seek(self, position: float) -> None:
        was_running = self._process is not None and self._process.returncode is None
        self._ended = False

        if was_running:
            self._clock.pause()
            await self._terminate()

        self._clock.seek(position)

        if was_running:
            await self._spawn(position)
            self._clock.start()

    async def close(self) -> None:
        await self._terminate()
        self._clock.reset()
        self._source = None
        logger.debug("FFplayOutput 已關閉")

    # === 內部方法 ===

    def _build_args(self, position: float) -> List[str]:
        args = [
            self.ffplay_path,
            "-nodisp",
            "-autoexit",
            "-loglevel", "error",
        ]
        if position > 0:
            args.extend(["-ss", f"{position:.3f}"])
        args.append(self._source)
        return args

    async def _spawn(self, position: float) -> None:
        """
        啟動 ffplay，並在短時間內檢查是否立即失敗

        Raises:
            PlaybackError: 找不到執行檔或程序立即以錯誤結束
        """
        args = self._build_args(position)
        logger.debug(f"[ffplay] 執行指令: {' '.join(args)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            logger.error(f"無法啟動 ffplay: {e}")
            raise PlaybackError(f"無法啟動 ffplay: {e}", source=self._source)

        # 不支援的格式或來源不存在時 ffplay 會很快以非 0 結束
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.start_timeout)
        except asyncio.TimeoutError:
            pass
        else:
            if proc.returncode != 0:
                stderr = (await proc.stderr.read()).decode(errors="replace").strip()
                logger.error(f"ffplay 播放失敗 (returncode={proc.returncode}): {stderr[:500]}")
                raise PlaybackError(stderr or f"ffplay returncode={proc.returncode}", source=self._source)

        self._process = proc
        self._watch_task = asyncio.create_task(self._watch(proc), name="ffplay_watch")

    async def _watch(self, proc: asyncio.subprocess.Process) -> None:
        """監看程序結束；只有自行正常結束才算自然播放完畢"""
        returncode = await proc.wait()

        if proc is not self._process:
            return

        self._process = None
        if returncode == 0:
            self._clock.pause()
            if self._clock.duration is not None:
                self._clock.seek(self._clock.duration)
            self._ended = True
            logger.debug(f"[ffplay] 播放完畢: {self._source}")
        else:
            self._clock.pause()
            logger.warning(f"[ffplay] 程序異常結束 (returncode={returncode})")

    async def _terminate(self) -> None:
        """結束目前的 ffplay 程序"""
        proc = self._process
        self._process = None

        if self._watch_task and not self._watch_task.done():
            self._watch_task.cancel()
        self._watch_task = None

        if proc is None or proc.returncode is not None:
            return

        try:
            proc.terminate()
            await asyncio.wait_for(proc.wait(), timeout=1.0)
            logger.debug(f"已停止 ffplay 程序: {proc.pid}")
        except ProcessLookupError:
            pass
        except asyncio.TimeoutError:
            try:
                proc.kill()
                await asyncio.wait_for(proc.wait(), timeout=0.5)
                logger.warning(f"強制結束 ffplay 程序: {proc.pid}")
            except (ProcessLookupError, asyncio.TimeoutError) as e:
                logger.warning(f"強制結束失敗: {e}")

    async def _probe_duration(self, source: str) -> Optional[float]:
        """以 ffprobe 取得來源總長度，失敗返回 None"""
        if not self.ffprobe_path:
            return None

        args = [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            source,
        ]

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"無法執行 ffprobe: {e}")
            return None

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"ffprobe 超時 ({self.probe_timeout}s): {source}")
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            return None

        if proc.returncode != 0:
            logger.warning(f"ffprobe 失敗: {stderr.decode(errors='replace').strip()[:300]}")
            return None

        try:
            duration = float(stdout.decode().strip())
        except ValueError:
            return None
        return duration if duration > 0 else None
