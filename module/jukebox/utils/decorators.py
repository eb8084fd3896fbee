"""
點唱機裝飾器

提供自動化功能：
- handle_errors: 將 JukeboxError 統一轉換為 HTTP 錯誤回應
- log_operation: 記錄操作的開始和結束
"""

from functools import wraps
from typing import Callable, TypeVar, ParamSpec
from aiohttp import web
from loguru import logger

from .errors import JukeboxError, NotFoundError, ValidationError

P = ParamSpec('P')
T = TypeVar('T')


def error_response(status: int, message: str) -> web.Response:
    """建立統一格式的錯誤回應 {"message": ...}"""
    return web.json_response({"message": message}, status=status)


def handle_errors(func: Callable[P, T]) -> Callable[P, T]:
    """
    裝飾器：統一處理路由錯誤並記錄

    - ValidationError → 400
    - NotFoundError → 404
    - 其他 JukeboxError → 500（使用 user_message）
    - 未預期錯誤 → 500（記錄完整堆疊）

    使用方式：
        @handle_errors
        async def rename_song(request):
            ...
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except ValidationError as e:
            logger.warning(f"[{func.__name__}] 驗證失敗: {e.message}")
            return error_response(400, e.user_message)
        except NotFoundError as e:
            logger.warning(f"[{func.__name__}] 找不到資源: {e.message}")
            return error_response(404, e.user_message)
        except JukeboxError as e:
            logger.error(f"[{func.__name__}] 點唱機錯誤: {e.message}")
            return error_response(500, e.user_message)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.exception(f"[{func.__name__}] 未預期錯誤: {e}")
            return error_response(500, "Internal server error")

    return wrapper


def log_operation(operation_name: str = None):
    """
    裝飾器：記錄操作的開始和結束

    使用方式：
        @log_operation("上傳歌曲")
        async def upload(self, paths):
            ...
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        name = operation_name or func.__name__

        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger.debug(f"開始: {name}")
            try:
                result = await func(*args, **kwargs)
                logger.debug(f"完成: {name}")
                return result
            except Exception as e:
                logger.error(f"失敗: {name} - {e}")
                raise

        return wrapper
    return decorator
