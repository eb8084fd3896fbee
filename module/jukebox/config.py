"""
環境設定

由 main.py 先呼叫 load_dotenv()，再以 Settings.from_env() 讀取環境變數。
無效的值會記錄警告並改用預設值。
"""

import os
from dataclasses import dataclass
from typing import Optional
from loguru import logger

from .constants import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_SERVER_URL, UPLOAD_DIR


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes')


@dataclass
class Settings:
    """點唱機設定"""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    upload_dir: str = UPLOAD_DIR
    server_url: str = DEFAULT_SERVER_URL
    ffplay_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """
        從環境變數讀取設定

        - JUKEBOX_HOST / JUKEBOX_PORT: 伺服器監聽位址
        - JUKEBOX_UPLOAD_DIR: 音訊檔與側檔目錄
        - JUKEBOX_SERVER_URL: 播放器連線的伺服器位址
        - JUKEBOX_FFPLAY / JUKEBOX_FFPROBE: 指定工具路徑
        - DEBUG: 除錯模式
        """
        port_raw = os.getenv("JUKEBOX_PORT")
        port = DEFAULT_PORT
        if port_raw:
            try:
                port = int(port_raw)
                if not 0 < port < 65536:
                    raise ValueError(port_raw)
            except ValueError:
                logger.warning(f"JUKEBOX_PORT 無效: {port_raw}，改用預設值 {DEFAULT_PORT}")
                port = DEFAULT_PORT

        return cls(
            host=os.getenv("JUKEBOX_HOST") or DEFAULT_HOST,
            port=port,
            upload_dir=os.getenv("JUKEBOX_UPLOAD_DIR") or UPLOAD_DIR,
            server_url=(os.getenv("JUKEBOX_SERVER_URL") or DEFAULT_SERVER_URL).rstrip("/"),
            ffplay_path=os.getenv("JUKEBOX_FFPLAY") or None,
            ffprobe_path=os.getenv("JUKEBOX_FFPROBE") or None,
            debug=env_flag("DEBUG"),
        )
