"""
音訊輸出介面

PlaybackEngine 只透過這個介面操作實際的發聲元件，
具體實作負責把各自的行為轉換成相同的指令與狀態。
"""

from abc import ABC, abstractmethod
from typing import Optional


class AudioOutput(ABC):
    """
    單一音訊輸出的基底類別

    一次只持有一個來源；載入新來源會讓舊來源的操作失效
    """

    @abstractmethod
    async def load(self, source: str) -> None:
        """載入來源並歸零位置（不自動播放）"""

    @abstractmethod
    async def play(self) -> None:
        """
        從目前位置開始播放

        Raises:
            PlaybackError: 無法開始播放
        """

    @abstractmethod
    async def pause(self) -> None:
        """暫停並保留位置"""

    @abstractmethod
    async def seek(self, position: float) -> None:
        """跳到指定位置（秒）"""

    @abstractmethod
    async def close(self) -> None:
        """釋放資源"""

    @property
    @abstractmethod
    def current_time(self) -> float:
        """目前播放位置（秒）"""

    @property
    @abstractmethod
    def duration(self) -> Optional[float]:
        """來源總長度（秒），未知時為 None"""

    @property
    @abstractmethod
    def ended(self) -> bool:
        """來源是否已自然播放完畢"""
