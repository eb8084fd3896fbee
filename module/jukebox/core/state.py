"""
播放時間追蹤

外部播放程序不會回報播放位置，因此以時間戳計算而非累加，
確保暫停/恢復/跳轉後時間正確。
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..constants import PROGRESS_BAR_LENGTH, PROGRESS_BAR_FILLED, PROGRESS_BAR_EMPTY


@dataclass
class PlaybackClock:
    """
    精確追蹤播放位置

    使用方式：
        clock = PlaybackClock()
        clock.set_duration(180.0)
        clock.start()            # 從目前位置開始計時

        print(clock.position)    # 例如：45.2 秒

        clock.pause()            # 暫停
        clock.seek(30.0)         # 跳到 30 秒
        clock.start()            # 從 30 秒繼續
        clock.reset()            # 歸零
    """

    is_running: bool = False

    # 私有屬性用於時間計算
    _offset: float = field(default=0.0, repr=False)       # 開始計時時的位置
    _started_at: float = field(default=0.0, repr=False)   # 開始計時的時間戳
    _duration: Optional[float] = field(default=None, repr=False)
    _time_func: Callable[[], float] = field(default=time.monotonic, repr=False)

    def start(self) -> None:
        """從目前位置開始計時"""
        if self.is_running:
            return
        self._started_at = self._time_func()
        self.is_running = True

    def pause(self) -> None:
        """停止計時並保留目前位置"""
        if not self.is_running:
            return
        self._offset = self.position
        self.is_running = False

    def seek(self, position: float) -> None:
        """設定播放位置（計時狀態不變）"""
        self._offset = max(0.0, position)
        self._started_at = self._time_func()

    def reset(self) -> None:
        """停止計時並歸零"""
        self.is_running = False
        self._offset = 0.0
        self._started_at = 0.0

    def set_duration(self, duration: Optional[float]) -> None:
        self._duration = duration

    @property
    def duration(self) -> Optional[float]:
        """總長度（秒），未知時為 None"""
        return self._duration

    @property
    def position(self) -> float:
        """
        即時計算目前播放位置

        Returns:
            目前位置（秒），已知總長度時限制在 [0, duration]
        """
        elapsed = self._offset
        if self.is_running:
            elapsed += self._time_func() - self._started_at

        elapsed = max(0.0, elapsed)
        if self._duration is not None:
            elapsed = min(elapsed, self._duration)
        return elapsed


def format_time(seconds: Optional[float]) -> str:
    """
    格式化時間為 M:SS 或 H:MM:SS

    Args:
        seconds: 秒數，None 視為 0
    """
    seconds = int(seconds or 0)

    if seconds >= 3600:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        secs = seconds % 60
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}:{secs:02d}"


def progress_bar(position: float, duration: Optional[float]) -> str:
    """
    生成進度條字串

    Returns:
        例如：「▓▓▓▓▓▓░░░░░░░░░」
    """
    if not duration or duration <= 0:
        return PROGRESS_BAR_EMPTY * PROGRESS_BAR_LENGTH
    ratio = max(0.0, min(1.0, position / duration))
    filled = int(ratio * PROGRESS_BAR_LENGTH)
    return PROGRESS_BAR_FILLED * filled + PROGRESS_BAR_EMPTY * (PROGRESS_BAR_LENGTH - filled)


def progress_display(position: float, duration: Optional[float]) -> str:
    """
    生成完整的進度顯示

    Returns:
        例如：「1:23 ▓▓▓▓▓░░░░░░░░░░ 3:45」
    """
    return f"{format_time(position)} {progress_bar(position, duration)} {format_time(duration)}"
