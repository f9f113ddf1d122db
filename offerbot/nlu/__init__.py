"""NLU capability: completion backends, strict decoding and task prompts."""

from .base import NLUClient
from .service import SELECTION_FAILED, NLUService

__all__ = ["NLUClient", "NLUService", "SELECTION_FAILED"]
