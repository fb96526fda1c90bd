"""Correlation ID logging context for tracing one conversation's turns.

Every inbound message is processed inside the context of a single
customer. The conversation id (the customer id) is stored in a
ContextVar so concurrently processed conversations keep separate ids
even when their turns interleave on the event loop.

Usage:
    from salesflow.logging_context import get_conversation_logger, set_conversation_id

    set_conversation_id("psid-1234")
    logger = get_conversation_logger(__name__)
    logger.info("Routing to rollo")  # record.conversation_id == "psid-1234"

``load_config`` attaches the filter to the root handlers and formats
records with ``LOG_FORMAT``, so every line shows the conversation id.
"""

import logging
from contextvars import ContextVar

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default="NO_CONVERSATION")


def set_conversation_id(conversation_id: str) -> None:
    """Set the correlation ID for the current async context."""
    _conversation_id.set(conversation_id)


def get_conversation_id() -> str:
    """Retrieve the current correlation ID."""
    return _conversation_id.get()


class ConversationIdFilter(logging.Filter):
    """Injects conversation_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = _conversation_id.get()  # type: ignore[attr-defined]
        return True


def get_conversation_logger(name: str) -> logging.Logger:
    """Return a logger with the ConversationIdFilter attached.

    The filter adds ``conversation_id`` to each record so formatters can
    include ``%(conversation_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, ConversationIdFilter) for f in logger.filters):
        logger.addFilter(ConversationIdFilter())
    return logger


LOG_FORMAT = "%(asctime)s [%(name)s] [%(conversation_id)s] %(levelname)s: %(message)s"


def attach_conversation_filter(*handlers: logging.Handler) -> None:
    """Attach the filter to ``handlers`` (default: the root logger's handlers).

    A handler filter sees records from every module logger that propagates
    to it, so ``LOG_FORMAT`` can render the id for all of them.
    """
    for handler in handlers or tuple(logging.getLogger().handlers):
        if not any(isinstance(f, ConversationIdFilter) for f in handler.filters):
            handler.addFilter(ConversationIdFilter())
