from loguru import logger

import argparse
import asyncio
import os
import sys
from dotenv import load_dotenv

from module.jukebox.client import LibraryClient, LibrarySync
from module.jukebox.config import Settings
from module.jukebox.core import PlaybackEngine, PlaylistController
from module.jukebox.ffmpeg import FFToolsManager
from module.jukebox.output import FFplayOutput
from module.jukebox.server import run_server
from module.jukebox.ui import ConsoleUI
from module.jukebox.utils import StartupFatalError

version = "v1.0"

# ─────────────────────────────────────────────────────────
#  伺服器：曲目庫與音訊串流
# ─────────────────────────────────────────────────────────

def serve(settings: Settings) -> int:
    try:
        run_server(settings)
    except StartupFatalError as e:
        logger.critical(f"❌ 無法啟動伺服器：{e.message}")
        return 1
    return 0

# ─────────────────────────────────────────────────────────
#  播放器：終端機介面
# ─────────────────────────────────────────────────────────

async def play(settings: Settings) -> int:
    manager = FFToolsManager(overrides={"ffplay": settings.ffplay_path, "ffprobe": settings.ffprobe_path})
    tools = await manager.ensure_tools()
    if not tools:
        logger.critical("❌ 找不到 ffplay / ffprobe，請安裝 FFmpeg 或設定 JUKEBOX_FFPLAY / JUKEBOX_FFPROBE")
        return 1

    output = FFplayOutput(ffplay_path=tools["ffplay"], ffprobe_path=tools["ffprobe"])
    engine = PlaybackEngine(output)

    async with LibraryClient(settings.server_url) as client:
        controller = PlaylistController(engine, source_resolver=client.audio_url)
        controller.attach()
        sync = LibrarySync(client, controller)

        logger.info(f"[初始化] 連線到曲目庫 {settings.server_url}")
        await sync.refresh()
        sync.start()

        try:
            await ConsoleUI(controller, client, sync).run()
        finally:
            await sync.stop()
            controller.detach()
            await engine.close()
            logger.info("[播放器] 已結束")
    return 0

# ─────────────────────────────────────────────────────────
#  Loguru 記錄器設定
# ─────────────────────────────────────────────────────────

def set_logger():
    """設定 Loguru 的輸出行為（終端機 & 檔案）"""
    logger.remove()
    debug_mode = os.getenv('DEBUG', '').lower() in ('true', '1', 'yes')

    # 終端輸出（stderr，避免與播放器介面混在一起）
    logger.add(sys.stderr, level="DEBUG" if debug_mode else "INFO", colorize=True)

    # 檔案輸出（每 7 天輪替，保留 30 天，自動壓縮）
    logger.add(
        "./logs/system.log",
        rotation="7 days",
        retention="30 days",
        encoding="UTF-8",
        compression="zip",
        level="INFO",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    )

# ─────────────────────────────────────────────────────────
#  程式入口點
# ─────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"自架音樂點唱機 {version}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="啟動曲目庫伺服器")
    serve_parser.add_argument("--host", help="監聽位址（預設 JUKEBOX_HOST）")
    serve_parser.add_argument("--port", type=int, help="監聽埠號（預設 JUKEBOX_PORT）")
    serve_parser.add_argument("--upload-dir", help="音訊檔目錄（預設 JUKEBOX_UPLOAD_DIR）")

    play_parser = subparsers.add_parser("play", help="啟動終端機播放器")
    play_parser.add_argument("--server", help="伺服器位址（預設 JUKEBOX_SERVER_URL）")
    return parser


if __name__ == '__main__':
    load_dotenv()
    set_logger()

    args = build_parser().parse_args()
    settings = Settings.from_env()

    if args.command == "serve":
        settings.host = args.host or settings.host
        settings.port = args.port or settings.port
        settings.upload_dir = args.upload_dir or settings.upload_dir
        sys.exit(serve(settings))

    settings.server_url = (args.server or settings.server_url).rstrip("/")
    try:
        sys.exit(asyncio.run(play(settings)))
    except KeyboardInterrupt:
        logger.info("[播放器] 使用者中斷")
