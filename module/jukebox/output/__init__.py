# Output module
from .base import AudioOutput
from .ffplay import FFplayOutput

__all__ = ["AudioOutput", "FFplayOutput"]
