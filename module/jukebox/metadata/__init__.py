# Metadata module
from .probe import ProbeResult, probe_audio, fallback_title

__all__ = ["ProbeResult", "probe_audio", "fallback_title"]
