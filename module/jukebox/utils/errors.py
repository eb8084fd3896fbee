"""
點唱機統一錯誤系統

所有錯誤都繼承自 JukeboxError，包含：
- message: 技術性錯誤訊息（給開發者 / log）
- user_message: 使用者友善的訊息（給 HTTP 回應或畫面顯示）
"""

from typing import Optional


class JukeboxError(Exception):
    """點唱機錯誤基類"""

    def __init__(self, message: str, user_message: Optional[str] = None):
        self.message = message
        self.user_message = user_message or message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class NotFoundError(JukeboxError):
    """找不到指定的曲目"""

    def __init__(self, message: str, track_id: Optional[int] = None):
        self.track_id = track_id
        super().__init__(
            message=message,
            user_message="Song not found"
        )


class ValidationError(JukeboxError):
    """
    輸入驗證失敗

    例如：空白標題、不支援的檔案類型、檔案過大
    user_message 直接沿用 message，讓呼叫端能顯示具體原因
    """
    pass


class PlaybackError(JukeboxError):
    """播放引擎無法開始播放（不支援的格式、來源不存在等）"""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(
            message=message,
            user_message="Playback failed"
        )


class PersistenceWarning(JukeboxError):
    """
    側檔讀寫失敗

    只用於記錄，不會往外拋出；記憶體中的狀態仍為權威資料
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message=message)


class StartupFatalError(JukeboxError):
    """無法建立儲存目錄，該儲存實例無法使用"""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(
            message=message,
            user_message="Storage is unavailable"
        )
