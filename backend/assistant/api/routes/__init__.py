"""
API routes package
"""
from assistant.api.routes import chat

__all__ = [
    "chat",
]
