# FFmpeg module
from .manager import FFToolsManager

__all__ = ["FFToolsManager"]
