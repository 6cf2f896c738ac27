from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from db.models import Role


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ChatRequest(CamelModel):
    session_id: Optional[str] = Field(None, max_length=64)
    user_message: str = Field(..., min_length=1)


class ChatResponse(CamelModel):
    bot_message: str
    timestamp: str
    session_id: str


class ChatMessageOut(CamelModel):
    id: int
    session_id: str
    role: Role
    content: str
    created_at: datetime
