"""
FFmpeg 工具管理器（ffplay / ffprobe）

優先順序：
1. 環境變數指定的路徑（JUKEBOX_FFPLAY / JUKEBOX_FFPROBE）
2. 系統 PATH 中的工具
3. 本地快取的工具（之前下載過的）
4. 自動下載（從 GitHub BtbN/FFmpeg-Builds）
"""

import asyncio
import os
import platform
import shutil
import subprocess
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional
from loguru import logger

import aiohttp

from ..constants import (
    FFTOOLS_DOWNLOAD_ATTEMPTS,
    FFTOOLS_DOWNLOAD_TIMEOUT,
    FFTOOLS_RETRY_DELAY,
    UPLOAD_CHUNK_SIZE,
)

TOOLS = ("ffplay", "ffprobe")


class FFToolsManager:
    """
    FFmpeg 工具管理器

    使用方式：
        manager = FFToolsManager()
        paths = await manager.ensure_tools()
        # {"ffplay": "/usr/bin/ffplay", "ffprobe": "/usr/bin/ffprobe"}
    """

    # GitHub BtbN/FFmpeg-Builds 下載 URL（穩定來源，內含 ffplay 與 ffprobe）
    DOWNLOAD_URLS = {
        "Windows": "https://github.com/BtbN/FFmpeg-Builds/releases/download/latest/ffmpeg-master-latest-win64-gpl.zip",
        "Linux": "https://github.com/BtbN/FFmpeg-Builds/releases/download/latest/ffmpeg-master-latest-linux64-gpl.tar.xz",
    }

    def __init__(self, cache_dir: str = None, overrides: Optional[Dict[str, str]] = None):
        """
        初始化工具管理器

        Args:
            cache_dir: 快取目錄，預設為 module/jukebox/ffmpeg/bin
            overrides: 指定工具路徑，例如 {"ffplay": "/opt/ffmpeg/ffplay"}
        """
        if cache_dir:
            self.cache_dir = Path(cache_dir)
        else:
            self.cache_dir = Path(__file__).parent / "bin"

        self.overrides = {k: v for k, v in (overrides or {}).items() if v}
        self._paths: Dict[str, str] = {}

    @property
    def paths(self) -> Dict[str, str]:
        """已確認的工具路徑"""
        return dict(self._paths)

    async def ensure_tools(self) -> Optional[Dict[str, str]]:
        """
        確保 ffplay 與 ffprobe 都可用

        Returns:
            {工具名稱: 執行路徑}，任一工具無法取得則返回 None
        """
        missing = []
        for tool in TOOLS:
            path = self._resolve_local(tool)
            if path:
                self._paths[tool] = path
            else:
                missing.append(tool)

        if not missing:
            return self.paths

        logger.info(f"系統未安裝 {', '.join(missing)}，開始下載...")
        if not await self._download_tools():
            logger.error("無法取得 FFmpeg 工具")
            return None

        for tool in missing:
            cached = self._find_cached(tool)
            if not cached:
                logger.error(f"下載的壓縮檔中找不到 {tool}")
                return None
            self._paths[tool] = str(cached)

        return self.paths

    # === 尋找 ===

    def _resolve_local(self, tool: str) -> Optional[str]:
        override = self.overrides.get(tool)
        if override:
            if self._verify(override):
                logger.info(f"使用指定的 {tool}: {override}")
                return override
            logger.warning(f"指定的 {tool} 無法執行: {override}")

        system_tool = shutil.which(tool)
        if system_tool and self._verify(system_tool):
            logger.info(f"使用系統 {tool}: {system_tool}")
            return system_tool

        cached = self._find_cached(tool)
        if cached:
            logger.info(f"使用快取 {tool}: {cached}")
            return str(cached)

        return None

    def _executable_name(self, tool: str) -> str:
        return f"{tool}.exe" if platform.system() == "Windows" else tool

    def _find_cached(self, tool: str) -> Optional[Path]:
        cached = self.cache_dir / self._executable_name(tool)
        if cached.exists() and self._verify(str(cached)):
            return cached
        return None

    @staticmethod
    def _verify(path: str) -> bool:
        """執行 -version 確認工具可用"""
        try:
            result = subprocess.run(
                [path, "-version"],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                timeout=5,
            )
        except (OSError, subprocess.SubprocessError):
            return False
        return result.returncode == 0 and b"version" in result.stdout

    # === 下載 ===

    async def _download_tools(self) -> bool:
        """下載 BtbN 建置並只取出 ffplay / ffprobe"""
        system = platform.system()
        url = self.DOWNLOAD_URLS.get(system)
        if url is None:
            logger.error(f"沒有 {system} 可用的 FFmpeg 建置")
            return False

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        archive_path = self.cache_dir / url.rsplit("/", 1)[-1]

        try:
            for attempt in range(1, FFTOOLS_DOWNLOAD_ATTEMPTS + 1):
                try:
                    await self._fetch(url, archive_path)
                    break
                except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                    logger.warning(f"[FFToolsManager] 第 {attempt}/{FFTOOLS_DOWNLOAD_ATTEMPTS} 次下載失敗: {e}")
                    if attempt == FFTOOLS_DOWNLOAD_ATTEMPTS:
                        return False
                    await asyncio.sleep(FFTOOLS_RETRY_DELAY)

            installed = await asyncio.to_thread(self._install_from_archive, archive_path)
        except (OSError, tarfile.TarError, zipfile.BadZipFile) as e:
            logger.error(f"[FFToolsManager] 無法安裝 FFmpeg 工具: {e}")
            return False
        finally:
            archive_path.unlink(missing_ok=True)

        logger.info(f"[FFToolsManager] 已安裝: {', '.join(installed) or '（無）'}")
        return bool(installed)

    async def _fetch(self, url: str, dest: Path) -> None:
        """串流下載到 dest，每累積 10 MB 記錄一次進度"""
        logger.info(f"[FFToolsManager] 下載 {url}")
        timeout = aiohttp.ClientTimeout(total=FFTOOLS_DOWNLOAD_TIMEOUT)
        step = 10 * 1024 * 1024
        received = 0
        next_report = step

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as resp:
                resp.raise_for_status()
                size = resp.content_length
                with open(dest, "wb") as out:
                    async for chunk in resp.content.iter_chunked(UPLOAD_CHUNK_SIZE):
                        out.write(chunk)
                        received += len(chunk)
                        if received >= next_report:
                            next_report += step
                            suffix = f" / {size // (1024 * 1024)} MB" if size else " MB"
                            logger.info(f"[FFToolsManager] 已下載 {received // (1024 * 1024)}{suffix}")

    def _install_from_archive(self, archive: Path) -> List[str]:
        """
        從壓縮檔中直接取出需要的執行檔到快取目錄

        Returns:
            成功安裝的檔名
        """
        wanted = {self._executable_name(tool) for tool in TOOLS}
        installed: List[str] = []

        if zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as zf:
                for info in zf.infolist():
                    name = Path(info.filename).name
                    if name in wanted and not info.is_dir():
                        with zf.open(info) as src:
                            installed.append(self._write_tool(name, src))
        else:
            with tarfile.open(archive, "r:*") as tf:
                for member in tf.getmembers():
                    name = Path(member.name).name
                    if name in wanted and member.isfile():
                        src = tf.extractfile(member)
                        if src is not None:
                            with src:
                                installed.append(self._write_tool(name, src))

        return installed

    def _write_tool(self, name: str, src) -> str:
        dest = self.cache_dir / name
        with open(dest, "wb") as out:
            shutil.copyfileobj(src, out)
        if os.name != "nt":
            dest.chmod(0o755)
        logger.debug(f"[FFToolsManager] {name} → {dest}")
        return name
