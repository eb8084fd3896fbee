"""
aiohttp 應用程式

MetadataStore 由外部建立後注入，整個程序只有一個實例
"""

from aiohttp import web
from loguru import logger

from .routes import STORE_KEY, setup_routes
from ..config import Settings
from ..core.store import MetadataStore


def create_app(store: MetadataStore) -> web.Application:
    """
    建立應用程式

    Args:
        store: 曲目中繼資料儲存
    """
    app = web.Application()
    app[STORE_KEY] = store
    setup_routes(app)
    logger.debug(f"[Server] 應用程式建立完成，儲存目錄: {store.upload_dir}")
    return app


def run_server(settings: Settings) -> None:
    """
    啟動伺服器（阻塞直到結束）

    Raises:
        StartupFatalError: 無法建立儲存目錄
    """
    store = MetadataStore(upload_dir=settings.upload_dir)
    app = create_app(store)

    logger.info(f"[Server] 曲目庫: {len(store)} 首，監聽 http://{settings.host}:{settings.port}")
    web.run_app(app, host=settings.host, port=settings.port, print=None)
    logger.info("[Server] 已停止")
