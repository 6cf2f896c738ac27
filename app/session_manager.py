import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import StoreError
from db.models import Message, Role


def new_session_id() -> str:
    """Random 32-hex-character session token."""
    return uuid.uuid4().hex


def resolve_session_id(session_id: Optional[str]) -> str:
    """
    Use the client-supplied session id when it is non-blank,
    otherwise start a new session.
    """
    if session_id is None or not session_id.strip():
        return new_session_id()
    return session_id


async def save_message(db: AsyncSession, session_id: str, role: Role, content: str) -> None:
    """
    Save a single chat message. id and created_at are assigned by the store.
    """
    msg = Message(
        session_id=session_id,
        role=Role(role).value,
        content=content,
    )
    try:
        db.add(msg)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError(f"Failed to save {Role(role).value} message: {e}") from e


async def get_chat_history(db: AsyncSession, session_id: str, limit: int = 20) -> List[Message]:
    """
    Get last N messages in chronological order.
    """
    try:
        result = await db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.id.desc())
            .limit(limit)
        )
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load chat history: {e}") from e
    return list(reversed(result.scalars().all()))


async def get_all_messages(db: AsyncSession, session_id: str) -> List[Message]:
    try:
        result = await db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.id.asc())
        )
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load messages: {e}") from e
    return list(result.scalars().all())
