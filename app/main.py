from contextlib import asynccontextmanager
from typing import List, Optional
import datetime
import json
import logging
import os
import traceback

from fastapi import Depends, FastAPI, HTTPException, Path, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from app.chat_core import ChatService
from app.config import Settings, get_settings
from app.errors import ChatError
from app.generation import GenerationClient
from app.models import ChatMessageOut, ChatRequest, ChatResponse
from db.database import Database

logger = logging.getLogger("audit_logger")


async def get_db(request: Request):
    """One session per request, released on every exit path."""
    async with request.app.state.database.session() as session:
        yield session


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def create_app(settings: Optional[Settings] = None, generator: Optional[GenerationClient] = None) -> FastAPI:
    settings = settings or get_settings()

    # Configure logging
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url, echo=settings.database_echo)
        await database.create_all()
        owns_generator = generator is None
        chat_generator = generator or GenerationClient(settings)
        app.state.database = database
        app.state.chat_service = ChatService(settings, chat_generator)
        try:
            yield
        finally:
            if owns_generator:
                await chat_generator.close()
            await database.close()

    app = FastAPI(
        title="RuleBot API",
        description="Chat relay that stores conversations and answers with an external text-generation service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Enable CORS for the browser frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_allowed_origin],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/diag/ping", response_model=str)
    def ping(service: ChatService = Depends(get_chat_service)):
        return service.ping()

    @app.get("/api/history/{sessionId}", response_model=List[ChatMessageOut])
    async def history(
        session_id: str = Path(..., alias="sessionId"),
        db: AsyncSession = Depends(get_db),
        service: ChatService = Depends(get_chat_service),
    ):
        return await service.get_history(db, session_id)

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(
        request: ChatRequest,
        db: AsyncSession = Depends(get_db),
        service: ChatService = Depends(get_chat_service),
    ):
        if len(request.user_message) > settings.max_message_length:
            raise HTTPException(
                status_code=422,
                detail=f"userMessage exceeds {settings.max_message_length} characters",
            )
        try:
            result = await service.chat(db, request.session_id, request.user_message)
        except ChatError as e:
            audit_log = {
                "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
                "session_id": e.session_id,
                "user_message": request.user_message,
                "error": str(e),
                "status": "ERROR"
            }
            logger.error("AUDIT_LOG: %s", json.dumps(audit_log))
            detail = "".join(traceback.format_exception(type(e), e, e.__traceback__))
            raise HTTPException(status_code=500, detail=detail)

        audit_log = {
            "timestamp": result["timestamp"],
            "session_id": result["session_id"],
            "user_message": request.user_message,
            "bot_message": result["bot_message"],
            "status": "SUCCESS"
        }
        logger.info("AUDIT_LOG: %s", json.dumps(audit_log))
        return result

    return app


# For local development; elsewhere run `uvicorn app.main:create_app --factory`
if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
