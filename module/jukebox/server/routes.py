"""
HTTP 路由

- GET    /api/songs              取得所有曲目
- POST   /api/songs/upload       上傳曲目（multipart，欄位 songs）
- PATCH  /api/songs/{id}         重新命名
- DELETE /api/songs/{id}         刪除
- GET    /api/audio/{filename}   串流音訊檔
"""

import asyncio
import os
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List

from aiohttp import BodyPartReader, hdrs, web
from loguru import logger

from ..constants import (
    ALLOWED_FORMATS,
    ALLOWED_MIME_TYPES,
    UPLOAD_CHUNK_SIZE,
    UPLOAD_FIELD_NAME,
    UPLOAD_MAX_FILE_SIZE,
    UPLOAD_MAX_FILES,
)
from ..core.store import MetadataStore
from ..core.track import TrackDraft
from ..metadata.probe import fallback_title, probe_audio
from ..utils.decorators import error_response, handle_errors
from ..utils.errors import NotFoundError, ValidationError

STORE_KEY = web.AppKey("store", MetadataStore)

INVALID_TYPE_MESSAGE = "Invalid file type. Only MP3, M4A, WAV, and FLAC are allowed."


@dataclass
class SavedUpload:
    """已寫入磁碟、尚未建立紀錄的上傳檔"""
    path: Path
    original_filename: str
    format: str


def setup_routes(app: web.Application) -> None:
    app.router.add_get("/api/songs", list_songs)
    app.router.add_post("/api/songs/upload", upload_songs)
    app.router.add_patch("/api/songs/{id}", rename_song)
    app.router.add_delete("/api/songs/{id}", delete_song)
    app.router.add_get("/api/audio/{filename}", serve_audio)


# === 曲目 ===

@handle_errors
async def list_songs(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    return web.json_response([track.to_dict() for track in store.list_all()])


@handle_errors
async def upload_songs(request: web.Request) -> web.Response:
    """
    上傳曲目

    先把所有檔案寫入磁碟並驗證，全部通過後才解析中繼資料並建立紀錄；
    任何失敗（驗證、寫檔錯誤、連線中斷）都會移除這次請求尚未入庫的檔案
    """
    store = request.app[STORE_KEY]

    if not request.content_type.startswith("multipart/"):
        raise ValidationError("No files uploaded")

    saved: List[SavedUpload] = []
    try:
        reader = await request.multipart()
        async for part in reader:
            if not isinstance(part, BodyPartReader):
                continue
            if part.name != UPLOAD_FIELD_NAME or not part.filename:
                await part.release()
                continue
            if len(saved) >= UPLOAD_MAX_FILES:
                raise ValidationError(f"Too many files. At most {UPLOAD_MAX_FILES} files per upload.")
            saved.append(await _save_part(part, store.upload_dir))
    except ValueError as e:
        _discard(saved)
        raise ValidationError(f"Malformed multipart body: {e}")
    except (Exception, asyncio.CancelledError):
        _discard(saved)
        raise

    if not saved:
        raise ValidationError("No files uploaded")

    created = []
    for i, upload in enumerate(saved):
        try:
            probe = await asyncio.to_thread(probe_audio, str(upload.path))
            draft = TrackDraft(
                title=probe.title or fallback_title(upload.original_filename),
                artist=probe.artist,
                duration=probe.duration,
                format=upload.format,
                path=str(upload.path),
                filename=upload.original_filename,
            )
            created.append(store.create(draft))
        except (Exception, asyncio.CancelledError):
            # 已建立紀錄的檔案交給 store 管理，只移除尚未入庫的部分
            _discard(saved[i:])
            raise

    logger.info(f"[Routes] 已上傳 {len(created)} 首曲目")
    return web.json_response([track.to_dict() for track in created], status=201)


@handle_errors
async def rename_song(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    track_id = _parse_id(request)

    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")

    title = body.get("title")
    artist = body.get("artist")
    if not isinstance(title, str):
        raise ValidationError("Title is required")
    if artist is not None and not isinstance(artist, str):
        raise ValidationError("Artist must be a string")

    track = store.rename(track_id, title, artist)
    return web.json_response(track.to_dict())


@handle_errors
async def delete_song(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    track_id = _parse_id(request)

    if store.get(track_id) is None:
        raise NotFoundError(f"曲目不存在: {track_id}", track_id=track_id)

    if not store.delete(track_id):
        return error_response(500, "Failed to delete song")

    return web.Response(status=204)


# === 音訊 ===

@handle_errors
async def serve_audio(request: web.Request) -> web.StreamResponse:
    """串流音訊檔；只使用檔名部分，避免跳出上傳目錄"""
    store = request.app[STORE_KEY]
    name = os.path.basename(request.match_info["filename"])
    path = store.upload_dir / name

    if not name or name.startswith(".") or path == store.sidecar_path or not path.is_file():
        logger.warning(f"[Routes] 找不到音訊檔: {name}")
        return error_response(404, f"File not found: {name}")

    return web.FileResponse(path)


# === 內部方法 ===

def _parse_id(request: web.Request) -> int:
    raw = request.match_info["id"]
    try:
        track_id = int(raw)
    except ValueError:
        raise ValidationError(f"Invalid song id: {raw}")
    if track_id < 1:
        raise ValidationError(f"Invalid song id: {raw}")
    return track_id


def _resolve_format(filename: str, mime_type: str) -> str:
    """依 MIME 類型過濾，格式以副檔名為主，副檔名不明時依 MIME 推斷"""
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(INVALID_TYPE_MESSAGE)

    ext = os.path.splitext(filename)[1].lower().lstrip(".")
    if ext in ALLOWED_FORMATS:
        return ext
    return ALLOWED_MIME_TYPES[mime_type]


async def _save_part(part: BodyPartReader, upload_dir: Path) -> SavedUpload:
    """
    將單一上傳檔寫入磁碟

    檔名保留原始名稱並加上時間戳與亂數，避免衝突

    Raises:
        ValidationError: 類型不允許或檔案過大
        OSError: 寫檔失敗；已寫入的部分會先被移除
    """
    original = os.path.basename(part.filename.replace("\\", "/"))
    if not original:
        raise ValidationError("Missing file name")

    mime_type = (part.headers.get(hdrs.CONTENT_TYPE) or "").split(";")[0].strip().lower()
    fmt = _resolve_format(original, mime_type)

    stem, ext = os.path.splitext(original)
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    path = upload_dir / f"{stem}-{unique_suffix}{ext}"

    size = 0
    try:
        with open(path, "wb") as f:
            while True:
                chunk = await part.read_chunk(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > UPLOAD_MAX_FILE_SIZE:
                    raise ValidationError(
                        f"File too large: {original}. Maximum size is {UPLOAD_MAX_FILE_SIZE // (1024 * 1024)} MB."
                    )
                f.write(chunk)
    except (Exception, asyncio.CancelledError):
        _discard([SavedUpload(path, original, fmt)])
        raise

    logger.debug(f"[Routes] 已儲存上傳檔: {original} → {path.name} ({size} bytes)")
    return SavedUpload(path=path, original_filename=original, format=fmt)


def _discard(uploads: List[SavedUpload]) -> None:
    for upload in uploads:
        try:
            upload.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[Routes] 無法移除上傳檔 {upload.path}: {e}")
