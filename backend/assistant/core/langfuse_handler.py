"""
LangFuse Observability Integration
Traces the informational fallback model calls; scripted flows are never traced
because they never reach a model.
"""
from typing import Any, Dict, List, Optional
from langfuse.callback import CallbackHandler

from assistant.core.config import settings
from assistant.core.logging import get_logger

logger = get_logger(__name__)

_langfuse_handler: Optional[CallbackHandler] = None


def get_langfuse_handler() -> Optional[CallbackHandler]:
    """
    Shared LangFuse callback handler, or None when no public key is configured
    or the client cannot be created.
    """
    global _langfuse_handler

    if not settings.LANGFUSE_PUBLIC_KEY:
        return None

    if _langfuse_handler is None:
        try:
            _langfuse_handler = CallbackHandler(
                public_key=settings.LANGFUSE_PUBLIC_KEY,
                secret_key=settings.LANGFUSE_SECRET_KEY,
                host=settings.LANGFUSE_HOST,
                release=settings.APP_ENV,
            )
            logger.info("LangFuse tracing enabled for fallback answers")
        except Exception as e:
            logger.warning(f"LangFuse unavailable, fallback calls will not be traced: {e}")
            return None

    return _langfuse_handler


def get_trace_config(run_name: str, tags: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Runnable config for one model call.

    Always names the run; attaches the LangFuse callback only when tracing is
    configured.
    """
    config: Dict[str, Any] = {"run_name": run_name, "tags": list(tags or [])}
    handler = get_langfuse_handler()
    if handler is not None:
        config["callbacks"] = [handler]
    return config


def flush_langfuse() -> None:
    """Flush pending traces on shutdown."""
    if _langfuse_handler is None:
        return
    try:
        _langfuse_handler.flush()
    except Exception as e:
        logger.warning(f"Failed to flush LangFuse traces: {e}")
