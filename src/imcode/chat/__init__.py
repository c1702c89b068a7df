"""Chat round-trips against the artifact store."""

from .history import ChatHistory
from .workspace import ChatTurnResult, ChatWorkspace, Notice, build_model_client

__all__ = ["ChatHistory", "ChatTurnResult", "ChatWorkspace", "Notice", "build_model_client"]
