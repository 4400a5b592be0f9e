"""Forum topics: titled posts with replies, tags and a resolved flag.

Every change rewrites the ``forum`` snapshot and broadcasts the complete
topic list to everyone.
"""
import logging
from typing import TYPE_CHECKING, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import AuthorizationError, NotFoundError, ValidationError
from .schemas import ForumReply, ForumTopic, Session

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)


class ForumBoard:
    def __init__(self, state: "ChatState") -> None:
        self._state = state
        self.topics: List[ForumTopic] = []

    def load(self) -> None:
        stored = self._state.store.load("forum", [])
        topics = []
        for item in stored if isinstance(stored, list) else []:
            try:
                topics.append(ForumTopic.model_validate(item))
            except PydanticValidationError:
                logger.warning("[Forum] Skipping unreadable stored topic")
        self.topics = topics
        logger.info(f"[Forum] Loaded {len(self.topics)} topics")

    def persist(self) -> bool:
        return self._state.store.save("forum", [t.model_dump(mode="json") for t in self.topics])

    def get(self, topic_id: str) -> Optional[ForumTopic]:
        for topic in self.topics:
            if topic.id == topic_id:
                return topic
        return None

    async def _publish(self) -> None:
        self.persist()
        await self._state.connections.broadcast("forum-topics", self.topics)

    async def create_topic(
        self, session: Session, title: str, body: str, tags: List[str]
    ) -> ForumTopic:
        title, body = title.strip(), body.strip()
        if not title or not body:
            raise ValidationError("topic needs a title and a body")

        topic = ForumTopic(
            title=title,
            body=body,
            tags=[t.strip() for t in tags if t.strip()],
            author=session.username,
            authorColor=session.color,
            createdAt=self._state.clock(),
        )
        self.topics.append(topic)
        logger.info(f"[Forum] {session.username} opened topic {topic.id}")
        await self._publish()
        return topic

    async def reply(self, session: Session, topic_id: str, body: str) -> ForumReply:
        topic = self.get(topic_id)
        if topic is None:
            raise NotFoundError(f"topic {topic_id} not found")
        body = body.strip()
        if not body:
            raise ValidationError("reply is empty")

        reply = ForumReply(
            body=body,
            author=session.username,
            authorColor=session.color,
            createdAt=self._state.clock(),
        )
        topic.replies.append(reply)
        await self._publish()
        return reply

    async def resolve(self, session: Session, topic_id: str) -> ForumTopic:
        """Toggle the resolved flag. Only the topic author may do this."""
        topic = self.get(topic_id)
        if topic is None:
            raise NotFoundError(f"topic {topic_id} not found")
        if topic.author != session.username:
            raise AuthorizationError("only the author can resolve a topic")

        topic.resolved = not topic.resolved
        await self._publish()
        return topic
