"""Repository utilities for persisting conversations and messages."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal

from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError

from bridge.errors import ConversationNotFoundError, DatabaseOperationError
from db.base import AsyncSessionFactory
from db.models import Conversation, Message

LOGGER = logging.getLogger(__name__)

Direction = Literal["inbound", "outbound", "system"]


class ConversationRepository:
    """Async repository encapsulating storage operations."""

    async def get_or_create_conversation(self, phone_number: str, name: str = "") -> Conversation:
        """Return the newest conversation for an address, creating it if needed."""

        try:
            async with AsyncSessionFactory() as session:
                query = (
                    select(Conversation)
                    .where(Conversation.phone_number == phone_number)
                    .order_by(desc(Conversation.created_at), desc(Conversation.id))
                    .limit(1)
                )
                result = await session.execute(query)
                conversation = result.scalar_one_or_none()
                if conversation is not None:
                    return conversation

                conversation = Conversation(phone_number=phone_number, lead_name=name or None)
                session.add(conversation)
                await session.commit()
                await session.refresh(conversation)
                return conversation
        except SQLAlchemyError as exc:
            LOGGER.error("Error in get_or_create_conversation(%s): %s", phone_number, exc)
            raise DatabaseOperationError() from exc

    async def store_message(self, conversation_id: int, direction: Direction, content: str) -> Message:
        now = datetime.now(timezone.utc)
        try:
            async with AsyncSessionFactory() as session:
                message = Message(
                    conversation_id=conversation_id,
                    direction=direction,
                    content=content,
                    timestamp=now,
                )
                session.add(message)
                await session.execute(
                    update(Conversation)
                    .where(Conversation.id == conversation_id)
                    .values(updated_at=now)
                )
                await session.commit()
                await session.refresh(message)
                return message
        except SQLAlchemyError as exc:
            LOGGER.error("Error storing message for conversation %s: %s", conversation_id, exc)
            raise DatabaseOperationError() from exc

    async def list_conversations(self) -> list[Conversation]:
        async with AsyncSessionFactory() as session:
            query = select(Conversation).order_by(desc(Conversation.updated_at), desc(Conversation.id))
            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_conversation(self, conversation_id: int) -> Conversation:
        async with AsyncSessionFactory() as session:
            conversation = await session.get(Conversation, conversation_id)
            if conversation is None:
                raise ConversationNotFoundError()
            return conversation

    async def list_messages(self, conversation_id: int) -> list[Message]:
        async with AsyncSessionFactory() as session:
            query = (
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.timestamp, Message.id)
            )
            result = await session.execute(query)
            return list(result.scalars().all())
