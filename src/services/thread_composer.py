"""Thread composer: build relation blocks and post image events.

A candidate is announced as a thread: the cover image is the root and every
screenshot replies to the previous post, forming a chain inside the thread.
"""

from typing import Any, Final

from src.config.logging_config import get_logger
from src.domain.exceptions import (
    InvalidRelationError,
    MatrixAPIError,
    PostError,
    RateLimitError,
)
from src.domain.models import (
    NoRelation,
    PlainReply,
    Relation,
    ThreadReply,
    UploadedImage,
)
from src.domain.protocols import ChatClientProtocol

logger = get_logger(__name__)

HTML_FORMAT: Final[str] = "org.matrix.custom.html"
THREAD_REL_TYPE: Final[str] = "m.thread"
BLURHASH_KEY: Final[str] = "xyz.amorgan.blurhash"
"""Event content key carrying the thumbnail's blurhash placeholder."""


def build_relation(root_id: str | None, parent_id: str | None) -> Relation:
    """Build a validated relation from optional root and parent ids.

    Args:
        root_id: Thread root event id
        parent_id: Immediate parent event id

    Returns:
        ThreadReply if root is set, PlainReply if only parent is set,
        NoRelation otherwise

    Raises:
        InvalidRelationError: If root is set without parent

    Example:
        >>> build_relation("$root", "$prev")
        ThreadReply(root='$root', parent='$prev')
    """
    if root_id:
        if not parent_id:
            raise InvalidRelationError(
                "parent_id must be set when replying in a thread"
            )
        return ThreadReply(root=root_id, parent=parent_id)
    if parent_id:
        return PlainReply(parent=parent_id)
    return NoRelation()


def relation_content(relation: Relation) -> dict[str, Any] | None:
    """Render a relation as an ``m.relates_to`` block (None for no relation)."""
    if isinstance(relation, ThreadReply):
        return {
            "event_id": relation.root,
            "rel_type": THREAD_REL_TYPE,
            "is_falling_back": True,
            "m.in_reply_to": {"event_id": relation.parent},
        }
    if isinstance(relation, PlainReply):
        return {"m.in_reply_to": {"event_id": relation.parent}}
    return None


def build_image_content(
    caption: str,
    image: UploadedImage,
    *,
    html: str | None = None,
    relation: Relation | None = None,
) -> dict[str, Any]:
    """Build ``m.image`` event content.

    Example:
        >>> content = build_image_content("Cover", image)
        >>> content["msgtype"]
        'm.image'
    """
    content: dict[str, Any] = {
        "msgtype": "m.image",
        "body": caption,
        "url": image.content_uri,
        "info": image.descriptor.to_info(),
        "filename": image.filename,
    }
    if html:
        content["format"] = HTML_FORMAT
        content["formatted_body"] = html

    relates_to = relation_content(relation or NoRelation())
    if relates_to is not None:
        content["m.relates_to"] = relates_to

    if image.descriptor.signature:
        content[BLURHASH_KEY] = image.descriptor.signature

    return content


class ThreadComposer:
    """Posts root, reply and fallback messages for one room."""

    def __init__(self, chat_client: ChatClientProtocol) -> None:
        self._chat_client = chat_client

    def post_root(
        self, caption: str, html: str | None, image: UploadedImage
    ) -> str:
        """Post the thread root image.

        Raises:
            PostError: If the chat backend rejects the event
        """
        content = build_image_content(caption, image, html=html)
        event_id = self._send(content, kind="root")
        logger.info("thread_root_posted", event_id=event_id, filename=image.filename)
        return event_id

    def post_reply(
        self,
        caption: str,
        image: UploadedImage,
        root_id: str | None,
        parent_id: str | None,
    ) -> str:
        """Post an image reply.

        Raises:
            InvalidRelationError: If root_id is set without parent_id
            PostError: If the chat backend rejects the event
        """
        relation = build_relation(root_id, parent_id)
        content = build_image_content(caption, image, relation=relation)
        event_id = self._send(content, kind="reply")
        logger.info(
            "thread_reply_posted",
            event_id=event_id,
            root_id=root_id,
            parent_id=parent_id,
            filename=image.filename,
        )
        return event_id

    def send_text_fallback(self, text: str, html: str | None = None) -> str:
        """Send a non-threaded text message.

        Raises:
            PostError: If the chat backend rejects the event
        """
        try:
            if html:
                return self._chat_client.send_formatted(text, html)
            return self._chat_client.send_text(text)
        except (MatrixAPIError, RateLimitError) as error:
            raise PostError(f"Failed to send text message: {error}") from error

    def _send(self, content: dict[str, Any], *, kind: str) -> str:
        try:
            return self._chat_client.send_message_event(content)
        except (MatrixAPIError, RateLimitError) as error:
            logger.warning("thread_post_failed", kind=kind, error=str(error))
            raise PostError(f"Failed to send {kind} image event: {error}") from error
