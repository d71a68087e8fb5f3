from .echo import EchoBackend
from .gemini import GeminiBackend

__all__ = ["EchoBackend", "GeminiBackend"]
