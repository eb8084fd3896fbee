"""
播放引擎

包裝單一 AudioOutput，不含任何播放清單邏輯：
- 播放控制（載入、播放、暫停、停止、跳轉）
- 三種通知（播放進度、時長已知、播放結束），多個監聽者同步廣播
- 背景輪詢輸出狀態，並在接近結尾時補發結束通知
"""

import asyncio
from typing import Callable, List, Optional
from loguru import logger

from ..output.base import AudioOutput
from ..constants import ENGINE_TICK_INTERVAL, END_EPSILON
from ..utils.errors import PlaybackError

TimeListener = Callable[[float], None]
DurationListener = Callable[[float], None]
EndedListener = Callable[[], None]


class PlaybackEngine:
    """
    播放引擎核心類別

    使用方式：
        engine = PlaybackEngine(output=FFplayOutput())
        engine.on_time_update(lambda t: print(t))
        engine.on_ended(lambda: print("ended"))

        await engine.load("http://127.0.0.1:5000/api/audio/song.mp3")
        await engine.play()
    """

    def __init__(
        self,
        output: AudioOutput,
        tick_interval: float = ENGINE_TICK_INTERVAL,
        end_epsilon: float = END_EPSILON,
    ):
        """
        初始化播放引擎

        Args:
            output: 實際發聲的音訊輸出
            tick_interval: 輪詢間隔（秒）
            end_epsilon: 距離結尾多少秒內補發結束通知
        """
        self.output = output
        self.tick_interval = tick_interval
        self.end_epsilon = end_epsilon

        self._source: Optional[str] = None
        self._is_playing = False
        self._last_duration: Optional[float] = None

        # 每次載入/跳轉/播放後各自最多發一次
        self._near_end_signalled = False
        self._end_signalled = False

        # 監聽者
        self._time_listeners: List[TimeListener] = []
        self._duration_listeners: List[DurationListener] = []
        self._ended_listeners: List[EndedListener] = []

        self._tick_task: Optional[asyncio.Task] = None

        logger.debug(f"PlaybackEngine 初始化: tick={tick_interval}s, epsilon={end_epsilon}s")

    # === 屬性 ===

    @property
    def source(self) -> Optional[str]:
        """目前載入的來源"""
        return self._source

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def current_time(self) -> float:
        """目前播放位置（秒）"""
        return self.output.current_time

    @property
    def duration(self) -> Optional[float]:
        """來源總長度（秒），未知時為 None"""
        return self.output.duration

    # === 播放控制 ===

    async def load(self, source: str) -> None:
        """
        載入新來源

        取代目前來源並歸零位置，不會自動播放
        """
        self._stop_ticker()
        self._is_playing = False

        await self.output.load(source)

        self._source = source
        self._last_duration = None
        self._reset_end_flags()

        logger.debug(f"已載入: {source}")
        self._check_duration()

    async def play(self) -> None:
        """
        開始播放

        Raises:
            PlaybackError: 未載入來源或輸出無法開始播放
        """
        if not self._source:
            raise PlaybackError("尚未載入來源")

        try:
            await self.output.play()
        except PlaybackError:
            self._is_playing = False
            self._stop_ticker()
            raise

        self._is_playing = True
        self._reset_end_flags()
        self._start_ticker()
        logger.debug(f"開始播放: {self._source}")

    async def pause(self) -> None:
        """暫停播放"""
        self._stop_ticker()
        self._is_playing = False
        await self.output.pause()
        logger.debug("已暫停")

    async def stop(self) -> None:
        """停止播放並將位置歸零"""
        self._stop_ticker()
        self._is_playing = False
        await self.output.pause()
        if self._source:
            await self.output.seek(0)
        self._reset_end_flags()
        self._emit(self._time_listeners, 0.0)
        logger.debug("已停止")

    async def seek(self, position: float) -> bool:
        """
        跳到指定位置

        Args:
            position: 目標位置（秒），必須在 [0, duration] 內

        Returns:
            是否成功跳轉（超出範圍或時長未知則忽略並返回 False）
        """
        duration = self.duration
        if duration is None or not 0 <= position <= duration:
            logger.debug(f"忽略跳轉: position={position}, duration={duration}")
            return False

        await self.output.seek(position)
        self._reset_end_flags()
        self._emit(self._time_listeners, self.current_time)
        logger.debug(f"已跳轉到 {position:.1f}s")
        return True

    async def close(self) -> None:
        """清理資源（程式結束時呼叫）"""
        task = self._tick_task
        self._stop_ticker()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._is_playing = False
        await self.output.close()
        logger.info("PlaybackEngine 已清理")

    # === 通知註冊 ===

    def on_time_update(self, callback: TimeListener) -> None:
        self._time_listeners.append(callback)

    def off_time_update(self, callback: TimeListener) -> None:
        self._time_listeners = [cb for cb in self._time_listeners if cb != callback]

    def on_duration_change(self, callback: DurationListener) -> None:
        self._duration_listeners.append(callback)

    def off_duration_change(self, callback: DurationListener) -> None:
        self._duration_listeners = [cb for cb in self._duration_listeners if cb != callback]

    def on_ended(self, callback: EndedListener) -> None:
        self._ended_listeners.append(callback)

    def off_ended(self, callback: EndedListener) -> None:
        self._ended_listeners = [cb for cb in self._ended_listeners if cb != callback]

    # === 輪詢 ===

    def poll(self) -> None:
        """
        取樣一次輸出狀態並發出對應通知

        - 播放進度：每次都發
        - 時長已知：時長改變時發
        - 播放結束：輸出回報自然結束時發一次；
          另外在距離結尾 end_epsilon 秒內補發一次，避免漏掉原生結束通知
        """
        position = self.current_time
        self._emit(self._time_listeners, position)
        self._check_duration()

        duration = self._last_duration
        ended = self.output.ended

        if (
            not ended
            and self._is_playing
            and not self._near_end_signalled
            and duration is not None
            and duration > 0
            and position >= duration - self.end_epsilon
        ):
            self._near_end_signalled = True
            logger.debug(f"接近結尾: {position:.2f}/{duration:.2f}")
            self._emit(self._ended_listeners)

        if ended and not self._end_signalled:
            self._end_signalled = True
            self._near_end_signalled = True
            self._is_playing = False
            logger.debug("播放結束")
            self._emit(self._ended_listeners)

    # === 內部方法 ===

    def _reset_end_flags(self) -> None:
        self._near_end_signalled = False
        self._end_signalled = False

    def _check_duration(self) -> None:
        duration = self.duration
        if duration is not None and duration != self._last_duration:
            self._last_duration = duration
            self._emit(self._duration_listeners, duration)

    def _emit(self, listeners: list, *args) -> None:
        """同步廣播給所有監聽者；單一監聽者失敗不影響其他監聽者"""
        for callback in list(listeners):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"監聽者執行失敗: {e}")

    def _start_ticker(self) -> None:
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = asyncio.create_task(self._tick_loop(), name="engine_tick")

    def _stop_ticker(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _tick_loop(self) -> None:
        while self._is_playing:
            await asyncio.sleep(self.tick_interval)
            self.poll()
