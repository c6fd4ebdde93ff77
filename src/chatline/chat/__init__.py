"""Chat module: transcript assembly, send orchestration and session state."""

from .assembler import build_transcript
from .pipeline import PipelineState, SendPipeline, SendResult, SendStatus
from .session import WELCOME_MESSAGE, ChatSession

__all__ = [
    "WELCOME_MESSAGE",
    "ChatSession",
    "PipelineState",
    "SendPipeline",
    "SendResult",
    "SendStatus",
    "build_transcript",
]
