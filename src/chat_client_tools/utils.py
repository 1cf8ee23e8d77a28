"""Utility functions for the chat_client_tools package."""

from typing import Optional, Tuple


def log_item(logger, item_type: str, message: Optional[str] = None, **extra) -> None:
    """Emit a structured log record.

    Args:
        logger: Logger or LoggerAdapter to log through
        item_type: Value of the ``log_type`` field
        message: Human readable message (defaults to the titled item type)
        **extra: Additional structured fields
    """
    structured = {"log_type": item_type, **extra}
    logger.info(
        message or item_type.replace("_", " ").capitalize(),
        extra={"structured": structured},
    )


def split_conversation_id(
    conversation_id: str, default_type: str = "messaging"
) -> Tuple[str, str]:
    """Split a ``type:id`` conversation id into its channel type and id.

    Args:
        conversation_id: Either ``"messaging:abc"`` or a bare ``"abc"``
        default_type: Channel type used for bare ids

    Returns:
        ``(channel_type, channel_id)``
    """
    channel_type, sep, channel_id = conversation_id.partition(":")
    if not sep:
        return default_type, conversation_id
    return channel_type or default_type, channel_id
