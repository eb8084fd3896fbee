"""
播放清單控制器

決定「下一首播什麼」的狀態機：
- 基礎清單與隨機清單（Fisher-Yates）兩種順序
- 重複模式：none / all / one
- 曲目結束時的自動切換（含 1 秒防抖）
- 對外提供播放、暫停、上/下一首、跳轉、隨機、重複等操作
"""

import asyncio
import random
import time
from enum import Enum
from typing import Callable, List, Optional, Set
from loguru import logger

from .engine import PlaybackEngine
from .track import Track
from ..constants import END_DEBOUNCE, PLAY_GRACE_PERIOD, PREVIOUS_RESTART_THRESHOLD
from ..utils.errors import PlaybackError


class RepeatMode(str, Enum):
    NONE = "none"
    ALL = "all"
    ONE = "one"

    def next_mode(self) -> "RepeatMode":
        """none → all → one → none"""
        order = [RepeatMode.NONE, RepeatMode.ALL, RepeatMode.ONE]
        return order[(order.index(self) + 1) % len(order)]


def fisher_yates(tracks: List[Track]) -> List[Track]:
    """回傳打亂後的新清單（不修改原清單）"""
    shuffled = list(tracks)
    for i in range(len(shuffled) - 1, 0, -1):
        j = random.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class PlaylistController:
    """
    播放清單控制器

    使用方式：
        controller = PlaylistController(engine, source_resolver=client.audio_url)
        controller.attach()

        await controller.set_tracks(await client.list_tracks())
        await controller.toggle_play()   # 從第一首開始
        await controller.next()
        controller.toggle_shuffle()
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        source_resolver: Callable[[Track], str],
        grace_period: float = PLAY_GRACE_PERIOD,
        end_debounce: float = END_DEBOUNCE,
        restart_threshold: float = PREVIOUS_RESTART_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
        shuffle: Callable[[List[Track]], List[Track]] = fisher_yates,
    ):
        """
        初始化控制器

        Args:
            engine: 播放引擎（整個程序只有一個）
            source_resolver: 將曲目轉換為播放來源（例如音訊端點 URL）
            grace_period: 載入後等待多久才開始播放（秒）
            end_debounce: 結束通知防抖時間（秒）
            restart_threshold: 「上一首」改為從頭播放的門檻（秒）
            clock: 時間來源（測試時可替換）
            shuffle: 打亂函數（測試時可替換）
        """
        self.engine = engine
        self.source_resolver = source_resolver
        self.grace_period = grace_period
        self.end_debounce = end_debounce
        self.restart_threshold = restart_threshold
        self._clock = clock
        self._shuffle = shuffle

        # 工作集
        self._tracks: List[Track] = []
        self._shuffled: List[Track] = []
        self._current_index: int = -1
        self._current_track: Optional[Track] = None

        # 狀態
        self.is_playing: bool = False
        self.is_shuffle: bool = False
        self.repeat_mode: RepeatMode = RepeatMode.NONE
        self.current_time: float = 0.0
        self.duration: float = 0.0

        # 內部狀態
        self._last_ended_at: Optional[float] = None
        self._load_generation: int = 0
        self._tasks: Set[asyncio.Task] = set()
        self._attached = False

        logger.debug("PlaylistController 初始化")

    # === 屬性 ===

    @property
    def tracks(self) -> List[Track]:
        """基礎清單（只讀）"""
        return list(self._tracks)

    @property
    def active_sequence(self) -> List[Track]:
        """目前生效的順序（隨機模式時為隨機清單）"""
        return self._shuffled if self.is_shuffle else self._tracks

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_track(self) -> Optional[Track]:
        return self._current_track

    # === 引擎通知 ===

    def attach(self) -> None:
        """註冊引擎通知"""
        if self._attached:
            return
        self.engine.on_time_update(self._on_time_update)
        self.engine.on_duration_change(self._on_duration_change)
        self.engine.on_ended(self._on_ended)
        self._attached = True

    def detach(self) -> None:
        """取消註冊引擎通知並取消背景任務"""
        if self._attached:
            self.engine.off_time_update(self._on_time_update)
            self.engine.off_duration_change(self._on_duration_change)
            self.engine.off_ended(self._on_ended)
            self._attached = False

        for task in list(self._tasks):
            task.cancel()

    def _on_time_update(self, position: float) -> None:
        self.current_time = position

    def _on_duration_change(self, duration: float) -> None:
        self.duration = duration

    def _on_ended(self) -> None:
        self._spawn(self.handle_track_ended())

    # === 基礎清單更新 ===

    async def set_tracks(self, tracks: List[Track]) -> None:
        """
        以新的曲目清單取代基礎清單

        - 重新產生隨機順序
        - 目前曲目仍存在：重新定位索引
        - 目前曲目已被移除：改選第一首，但不自動播放
        - 清單變為空：清除目前曲目並停止
        """
        self._tracks = list(tracks)
        self._shuffled = self._shuffle(self._tracks)

        if self._current_track is None:
            logger.debug(f"基礎清單更新: {len(self._tracks)} 首")
            return

        index = self._index_of(self._current_track, self.active_sequence)
        if index != -1:
            self._current_index = index
            # 以新清單中的紀錄為準（標題/演出者可能已被修改）
            self._current_track = self.active_sequence[index]
            logger.debug(f"基礎清單更新: {len(self._tracks)} 首，目前曲目位於 {index}")
            return

        self._load_generation += 1
        self.is_playing = False

        if self._tracks:
            self._current_index = 0
            self._current_track = self.active_sequence[0]
            logger.info(f"目前曲目已被移除，改選: {self._current_track.title}")
            await self.engine.stop()
            await self._load_current()
        else:
            self._current_index = -1
            self._current_track = None
            self.current_time = 0.0
            self.duration = 0.0
            logger.info("曲目清單已清空")
            await self.engine.stop()

    # === 播放控制 ===

    async def play(self, track: Track) -> bool:
        """
        播放指定曲目

        Returns:
            是否在目前生效的順序中找到該曲目
        """
        sequence = self.active_sequence
        index = self._index_of(track, sequence)
        if index == -1:
            logger.warning(f"清單中找不到曲目: {track.title} (#{track.id})")
            return False

        await self._select(index, play=True)
        return True

    async def toggle_play(self) -> None:
        """
        切換播放/暫停

        尚未選擇曲目時從第一首開始播放
        """
        if self._current_track is None:
            if self._tracks:
                logger.debug("從第一首開始播放")
                await self._select(0, play=True)
            return

        if self.is_playing:
            logger.debug("暫停播放")
            self.is_playing = False
            self._load_generation += 1
            await self.engine.pause()
        else:
            logger.debug("恢復播放")
            self.is_playing = True
            if self.engine.source != self.source_resolver(self._current_track):
                await self._start_current()
            else:
                await self._resume()

    async def next(self) -> None:
        """
        下一首

        不論重複模式為何，最後一首之後都會回到第一首
        """
        sequence = self.active_sequence
        if not sequence:
            return
        await self._select((self._current_index + 1) % len(sequence), play=True)

    async def previous(self) -> None:
        """
        上一首

        已播放超過門檻秒數時改為從頭播放目前曲目
        """
        sequence = self.active_sequence
        if not sequence:
            return

        if self.current_time > self.restart_threshold:
            logger.debug("從頭播放目前曲目")
            await self.seek(0)
            return

        if self._current_index < 0:
            await self._select(len(sequence) - 1, play=True)
            return

        await self._select((self._current_index - 1) % len(sequence), play=True)

    async def seek(self, position: float) -> None:
        """跳到指定位置，並同步到 current_time"""
        await self.engine.seek(position)
        self.current_time = position

    def toggle_shuffle(self) -> bool:
        """
        切換隨機模式

        開啟時重新打亂；兩個方向都會把索引重新定位到目前曲目

        Returns:
            切換後是否為隨機模式
        """
        self.is_shuffle = not self.is_shuffle

        if self.is_shuffle:
            self._shuffled = self._shuffle(self._tracks)

        if self._current_track is not None:
            self._current_index = self._index_of(self._current_track, self.active_sequence)

        logger.debug(f"隨機模式: {'開啟' if self.is_shuffle else '關閉'}")
        return self.is_shuffle

    def toggle_repeat(self) -> RepeatMode:
        """切換重複模式：none → all → one → none"""
        self.repeat_mode = self.repeat_mode.next_mode()
        logger.debug(f"重複模式: {self.repeat_mode.value}")
        return self.repeat_mode

    async def handle_track_ended(self) -> None:
        """
        處理曲目結束

        1 秒內重複的結束通知會被忽略（引擎可能同時發出接近結尾與原生結束兩次通知）
        - repeat one：從頭重播同一首
        - repeat all：下一首（最後一首之後回到第一首）
        - repeat none：下一首；已是最後一首則停止
        """
        now = self._clock()
        if self._last_ended_at is not None and now - self._last_ended_at < self.end_debounce:
            logger.debug(f"忽略重複的結束通知 ({now - self._last_ended_at:.2f}s 內)")
            return
        self._last_ended_at = now

        if self._current_track is None:
            return

        logger.debug(f"曲目結束: {self._current_track.title}")

        if self.repeat_mode == RepeatMode.ONE:
            logger.debug("重播目前曲目 (repeat one)")
            await self.seek(0)
            self.is_playing = True
            await self._resume()
            return

        sequence = self.active_sequence
        at_last = self._current_index >= len(sequence) - 1
        if self.repeat_mode == RepeatMode.NONE and at_last:
            logger.info("播放清單已結束")
            await self._select(0, play=False)
            await self.engine.stop()
            return

        await self.next()

    # === 狀態查詢 ===

    def status(self) -> dict:
        """取得控制器完整狀態"""
        return {
            "current_track": self._current_track,
            "current_index": self._current_index,
            "is_playing": self.is_playing,
            "is_shuffle": self.is_shuffle,
            "repeat_mode": self.repeat_mode.value,
            "current_time": self.current_time,
            "duration": self.duration,
            "track_count": len(self._tracks),
        }

    # === 內部方法 ===

    @staticmethod
    def _index_of(track: Track, sequence: List[Track]) -> int:
        for i, candidate in enumerate(sequence):
            if candidate.id == track.id:
                return i
        return -1

    async def _select(self, index: int, play: bool) -> None:
        """選擇目前生效順序中的指定索引，並依 play 決定是否開始播放"""
        sequence = self.active_sequence
        self._current_index = index
        self._current_track = sequence[index]
        self.is_playing = play
        self.current_time = 0.0

        logger.debug(f"選擇曲目 [{index}]: {self._current_track.title}")

        if play:
            await self._start_current()
        else:
            self._load_generation += 1
            await self._load_current()

    async def _load_current(self) -> None:
        """只載入目前曲目，不播放"""
        if self._current_track is None:
            return
        await self.engine.load(self.source_resolver(self._current_track))

    async def _start_current(self) -> None:
        """
        載入目前曲目並在短暫延遲後開始播放

        期間若有新的選擇（世代編號改變）則放棄這次播放
        """
        self._load_generation += 1
        generation = self._load_generation
        track = self._current_track
        if track is None:
            return

        source = self.source_resolver(track)
        logger.info(f"載入曲目: {track.title}, src: {source}")
        await self.engine.load(source)

        if self.grace_period > 0:
            await asyncio.sleep(self.grace_period)

        if generation != self._load_generation or not self.is_playing:
            logger.debug(f"放棄過期的播放請求: {track.title}")
            return

        await self._resume()

    async def _resume(self) -> None:
        """呼叫引擎播放；失敗時切回未播放狀態"""
        try:
            await self.engine.play()
        except PlaybackError as e:
            logger.error(f"播放失敗: {e.message}")
            self.is_playing = False

    def _spawn(self, coro) -> None:
        """建立背景任務並保留參考直到完成"""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error(f"背景任務失敗: {error}")
