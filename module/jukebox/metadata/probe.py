"""
音訊標頭解析

使用 mutagen 讀取上傳檔案的標題、演出者與時長。
解析失敗不會中斷上傳，只回傳空的結果讓呼叫端使用預設值。
"""

import os
from dataclasses import dataclass
from typing import Optional
from loguru import logger

from mutagen import File as MutagenFile


@dataclass
class ProbeResult:
    title: Optional[str] = None
    artist: Optional[str] = None
    duration: int = 0  # 整數秒


def probe_audio(path: str) -> ProbeResult:
    """
    解析音訊檔案的中繼資料

    這是同步的阻塞呼叫，伺服器端應透過 asyncio.to_thread 執行

    Args:
        path: 音訊檔案路徑

    Returns:
        ProbeResult，無法解析時各欄位為空 / 0
    """
    try:
        audio = MutagenFile(path, easy=True)
    except Exception as e:
        logger.warning(f"解析中繼資料失敗 {os.path.basename(path)}: {e}")
        return ProbeResult()

    if audio is None:
        logger.debug(f"無法辨識的音訊格式: {os.path.basename(path)}")
        return ProbeResult()

    tags = audio.tags or {}
    title = _first_tag(tags, "title")
    artist = _first_tag(tags, "artist")

    length = getattr(audio.info, "length", 0) if audio.info else 0
    duration = int(length) if length and length > 0 else 0

    return ProbeResult(title=title, artist=artist, duration=duration)


def fallback_title(original_filename: str) -> str:
    """去掉副檔名的原始檔名，作為缺少標題時的替代"""
    stem, _ = os.path.splitext(os.path.basename(original_filename))
    return stem or original_filename


def _first_tag(tags, key: str) -> Optional[str]:
    try:
        values = tags.get(key)
    except (KeyError, ValueError):
        return None
    if not values:
        return None
    value = values[0] if isinstance(values, list) else values
    value = str(value).strip()
    return value or None
