import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.errors import ChatError
from app.generation import GenerationClient
from app.session_manager import (
    get_all_messages,
    get_chat_history,
    resolve_session_id,
    save_message,
)
from db.models import Message, Role


PING_MESSAGE = "RuleBot API running"


class ChatService:
    """Sequences the store and the generation client for each endpoint."""

    def __init__(self, settings: Settings, generator: GenerationClient):
        self.settings = settings
        self.generator = generator

    def ping(self) -> str:
        return PING_MESSAGE

    async def get_history(self, db: AsyncSession, session_id: str) -> List[Message]:
        return await get_all_messages(db, session_id)

    async def chat(self, db: AsyncSession, session_id: Optional[str], user_message: str) -> dict:
        """
        Persist the user turn, ask the generation service with the recent
        history, persist the reply. Rows already written are kept if a later
        step fails.
        """
        session_id = resolve_session_id(session_id)
        try:
            await save_message(db, session_id, Role.USER, user_message)
            history = await get_chat_history(db, session_id, limit=self.settings.history_limit)
            reply = await self.generator.generate(history, user_message)
            await save_message(db, session_id, Role.ASSISTANT, reply)
        except Exception as e:
            raise ChatError(
                f"Chat turn failed for session {session_id}: {e}", cause=e, session_id=session_id
            ) from e

        return {
            "bot_message": reply,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "session_id": session_id,
        }
