"""
常數設定

集中管理播放器與伺服器的可調參數
"""

# === 儲存 ===
UPLOAD_DIR = "./audio-uploads"
SIDECAR_FILENAME = "songs-metadata.json"

# === 曲目 ===
DEFAULT_ARTIST = "Unknown"
ALLOWED_FORMATS = ("mp3", "m4a", "wav", "flac")

# === 上傳 ===
UPLOAD_FIELD_NAME = "songs"
UPLOAD_MAX_FILES = 10
UPLOAD_MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MB
UPLOAD_CHUNK_SIZE = 64 * 1024

# MIME → 格式標籤
ALLOWED_MIME_TYPES = {
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
}

# === 播放引擎 ===
ENGINE_TICK_INTERVAL = 0.25     # 秒
END_EPSILON = 0.1               # 接近結尾多少秒內視為已結束
PLAY_START_TIMEOUT = 0.3        # 等待 ffplay 啟動失敗的時間

# === 播放清單控制 ===
END_DEBOUNCE = 1.0              # 結束訊號防抖（秒）
PREVIOUS_RESTART_THRESHOLD = 3  # 超過幾秒時「上一首」改為從頭播放
PLAY_GRACE_PERIOD = 0.1         # 載入後延遲多久才開始播放

# === FFmpeg 工具 ===
FFTOOLS_DOWNLOAD_ATTEMPTS = 3
FFTOOLS_DOWNLOAD_TIMEOUT = 600  # 秒
FFTOOLS_RETRY_DELAY = 2

# === 用戶端 ===
LIBRARY_REFRESH_INTERVAL = 5.0  # 重新抓取曲目清單的間隔（秒）
HTTP_TIMEOUT = 30

# === 伺服器 ===
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000
DEFAULT_SERVER_URL = "http://127.0.0.1:5000"

# === 進度顯示 ===
PROGRESS_BAR_LENGTH = 15
PROGRESS_BAR_FILLED = "▓"
PROGRESS_BAR_EMPTY = "░"
