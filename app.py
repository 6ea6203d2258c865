"""
FastAPI application for the Stayava booking assistant.

Services are built once in the lifespan handler and kept on app.state;
endpoints reach them through small dependency functions.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

if os.getenv("VERCEL") != "1":
    from dotenv import load_dotenv
    load_dotenv(override=True)

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from agent import BookingAgent, InvalidInputError, SessionAccessDenied, SessionManager, TurnResult
from config import AppConfig, validate_config_on_startup
from database import ConversationAccessDenied, ConversationNotFound, ConversationStore, StorageError
from gemini_client import GeminiClient
from models import (
    DEFAULT_CATALOG, BookingCreateRequest, BookingCreateResponse, ChatRequest, ChatResponse,
    ConversationRecord, ConversationSaveRequest, ConversationSaveResponse, HotelSelectionRequest
)
from tools import FallbackResponder
from auth import optional_user_id, require_user_id
from logger import get_logger

logger = get_logger(__name__)

IS_SERVERLESS = os.getenv("VERCEL") == "1" or os.getenv("AWS_LAMBDA_FUNCTION_NAME") is not None


def build_services(config: AppConfig) -> dict:
    """Construct the store, completion client and agent from configuration."""
    store = ConversationStore(config.database_url)
    store.init_db()

    catalog = list(DEFAULT_CATALOG)
    fallback = FallbackResponder(catalog)
    completion_client = GeminiClient(
        api_key=config.gemini_api_key,
        api_url=config.gemini_api_url,
        fallback=fallback,
        timeout=config.gemini_timeout,
        temperature=config.gemini_temperature,
        max_output_tokens=config.gemini_max_output_tokens,
    )
    agent = BookingAgent(
        completion_client=completion_client,
        store=store,
        fallback=fallback,
        catalog=catalog,
        sessions=SessionManager(ttl_hours=config.session_ttl_hours),
        typing_delay=config.typing_delay_ms / 1000.0,
        max_prompt_chars=config.max_prompt_chars,
    )
    return {"store": store, "completion_client": completion_client, "agent": agent}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info(f"Starting Stayava API (Serverless: {IS_SERVERLESS})")
    logger.info("=" * 60)

    config = getattr(app.state, "config", None)
    if config is None:
        config = validate_config_on_startup()
        app.state.config = config

    services = build_services(config)
    app.state.store = services["store"]
    app.state.completion_client = services["completion_client"]
    app.state.agent = services["agent"]

    logger.info(
        "[STARTUP] Services ready",
        completion_configured=app.state.completion_client.is_configured,
        database=app.state.store.engine.url.get_backend_name()
    )

    yield

    logger.info("Shutting down")
    app.state.agent.sessions.clear()
    app.state.store.close()


def get_agent(request: Request) -> BookingAgent:
    return request.app.state.agent


def get_store(request: Request) -> ConversationStore:
    return request.app.state.store


def error_response(status_code: int, error: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "code": code})


def to_chat_response(result: TurnResult) -> ChatResponse:
    return ChatResponse(
        text=result.reply,
        session_id=result.session_id,
        state=result.state,
        slots=result.slots,
        confirmed=result.confirmed,
        reservation=result.reservation,
        booking_id=result.booking_id,
    )


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration to use; read and validated from the
            environment at startup when omitted
    """
    app = FastAPI(
        title="Stayava Booking Assistant API",
        description="Hotel booking chat assistant with Gemini and rule-based fallback",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config

    cors_origins = config.cors_origins if config else [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        logger.warning("Invalid chat input", code=exc.code, path=request.url.path)
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc), exc.code)

    @app.exception_handler(ConversationNotFound)
    async def not_found_handler(request: Request, exc: ConversationNotFound):
        return error_response(status.HTTP_404_NOT_FOUND, "Conversation not found", "CONVERSATION_NOT_FOUND")

    @app.exception_handler(ConversationAccessDenied)
    async def access_denied_handler(request: Request, exc: ConversationAccessDenied):
        return error_response(status.HTTP_403_FORBIDDEN, "Unauthorized access to this conversation", "UNAUTHORIZED_ACCESS")

    @app.exception_handler(SessionAccessDenied)
    async def session_denied_handler(request: Request, exc: SessionAccessDenied):
        return error_response(status.HTTP_403_FORBIDDEN, "Unauthorized access to this session", "UNAUTHORIZED_ACCESS")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Conversation storage unavailable", "STORAGE_ERROR")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {str(exc)}",
            path=request.url.path,
            method=request.method,
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": str(exc) if os.getenv("DEBUG", "").lower() == "true" else None,
                "code": "SERVER_ERROR"
            }
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {str(e)}",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.time() - start_time) * 1000, 2)
            )
            raise

        logger.request(
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
            request_id=request_id
        )
        return response

    @app.get("/")
    async def root():
        return {
            "message": "Stayava Booking Assistant API",
            "version": "1.0.0",
            "status": "running",
            "serverless": IS_SERVERLESS,
            "docs": "/docs"
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Database connectivity and completion provider configuration."""
        store: ConversationStore = request.app.state.store
        client: GeminiClient = request.app.state.completion_client

        services = {
            "database": await run_in_threadpool(store.health_check),
            "completion": {
                "healthy": client.is_configured,
                "details": "Configured" if client.is_configured else "Fallback responder only"
            },
        }
        all_healthy = all(s.get("healthy", False) for s in services.values())

        return {
            "status": "healthy" if all_healthy else "degraded",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "serverless": IS_SERVERLESS,
            "services": services,
        }

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(
        body: ChatRequest,
        agent: BookingAgent = Depends(get_agent),
        user_id: Optional[str] = Depends(optional_user_id)
    ) -> ChatResponse:
        """
        Answer one user message.

        Returns 400 when the prompt or the session id is missing; provider
        and storage failures never surface here.
        """
        logger.info(
            "Chat request received",
            message_length=len(body.prompt or ""),
            session_id=body.session_id,
            authenticated=user_id is not None
        )
        result = await agent.handle_message(body.session_id, body.prompt, user_id=user_id)
        return to_chat_response(result)

    @app.post("/api/chat/hotel", response_model=ChatResponse)
    async def select_hotel(
        body: HotelSelectionRequest,
        agent: BookingAgent = Depends(get_agent),
        user_id: Optional[str] = Depends(optional_user_id)
    ) -> ChatResponse:
        result = await agent.select_hotel(body.session_id, body.hotel_id, user_id=user_id)
        return to_chat_response(result)

    @app.get("/api/hotels")
    async def list_hotels(agent: BookingAgent = Depends(get_agent)):
        return {"hotels": [hotel.model_dump() for hotel in agent.catalog]}

    @app.post("/api/conversations", status_code=status.HTTP_201_CREATED, response_model=ConversationSaveResponse)
    async def save_conversation(
        body: ConversationSaveRequest,
        store: ConversationStore = Depends(get_store),
        user_id: Optional[str] = Depends(optional_user_id)
    ):
        if not body.session_id or body.messages is None:
            return error_response(
                status.HTTP_400_BAD_REQUEST,
                "Session ID and messages are required",
                "INVALID_CONVERSATION_DATA"
            )

        record_id = await run_in_threadpool(store.append, body.session_id, user_id, body.messages)
        return ConversationSaveResponse(message="Conversation saved", conversation_id=record_id)

    @app.get("/api/conversations/{session_id}", response_model=ConversationRecord)
    async def get_conversation(
        session_id: str,
        store: ConversationStore = Depends(get_store),
        user_id: Optional[str] = Depends(optional_user_id)
    ):
        return await run_in_threadpool(store.get_for_requester, session_id, user_id)

    @app.get("/api/conversations")
    async def get_user_conversations(
        limit: int = Query(20, ge=1, le=100),
        store: ConversationStore = Depends(get_store),
        user_id: str = Depends(require_user_id)
    ):
        records = await run_in_threadpool(store.list_for_user, user_id, limit)
        return {
            "success": True,
            "conversations": [record.model_dump(by_alias=True, mode="json") for record in records]
        }

    @app.post("/api/bookings", status_code=status.HTTP_201_CREATED, response_model=BookingCreateResponse)
    async def create_booking(
        body: BookingCreateRequest,
        store: ConversationStore = Depends(get_store),
        user_id: str = Depends(require_user_id)
    ):
        """Record a finalized reservation for the authenticated user."""
        if not body.is_complete():
            return error_response(
                status.HTTP_400_BAD_REQUEST,
                "Hotel, dates and guest count are required",
                "INCOMPLETE_BOOKING_DATA"
            )

        booking_id = await run_in_threadpool(
            store.create_booking,
            user_id,
            body.hotel_id,
            body.hotel_name,
            body.check_in,
            body.check_out,
            body.guests,
            body.total_price,
        )
        return BookingCreateResponse(message="Booking saved", booking_id=booking_id)

    @app.get("/api/bookings")
    async def get_user_bookings(
        store: ConversationStore = Depends(get_store),
        user_id: str = Depends(require_user_id)
    ):
        bookings = await run_in_threadpool(store.list_bookings_for_user, user_id)
        return {
            "success": True,
            "bookings": [booking.model_dump(by_alias=True, mode="json") for booking in bookings]
        }

    @app.get("/api/session/{session_id}")
    async def get_session(
        session_id: str,
        agent: BookingAgent = Depends(get_agent),
        user_id: Optional[str] = Depends(optional_user_id)
    ):
        """Live transcript and reservation progress of an in-memory session."""
        session = agent.sessions.get(session_id)
        if session is None:
            return error_response(status.HTTP_404_NOT_FOUND, "Session not found", "SESSION_NOT_FOUND")
        if session.user_id is not None and session.user_id != user_id:
            return error_response(status.HTTP_403_FORBIDDEN, "Unauthorized access to this session", "UNAUTHORIZED_ACCESS")

        return {
            "session_id": session.id,
            "created_at": session.created_at.isoformat(),
            "last_active": session.last_active.isoformat(),
            "state": session.state.value,
            "slots": session.slots.model_dump(by_alias=True, mode="json"),
            "history": [turn.model_dump(mode="json") for turn in session.transcript if turn.role != "system"],
            "message_count": len(session.transcript),
            "is_expired": session.is_expired(agent.sessions.ttl_hours)
        }

    @app.delete("/api/session/{session_id}")
    async def delete_session(
        session_id: str,
        agent: BookingAgent = Depends(get_agent),
        user_id: Optional[str] = Depends(optional_user_id)
    ):
        session = agent.sessions.get(session_id)
        if session is None:
            return error_response(status.HTTP_404_NOT_FOUND, "Session not found", "SESSION_NOT_FOUND")
        if session.user_id is not None and session.user_id != user_id:
            return error_response(status.HTTP_403_FORBIDDEN, "Unauthorized access to this session", "UNAUTHORIZED_ACCESS")

        agent.sessions.delete(session_id)

        logger.info("Session deleted", session_id=session_id)
        return {"message": "Session deleted successfully", "session_id": session_id}

    @app.post("/api/sessions/cleanup")
    async def cleanup_expired_sessions(agent: BookingAgent = Depends(get_agent)):
        cleaned = agent.sessions.cleanup_expired()
        return {
            "message": "Expired sessions cleaned up",
            "cleaned_count": cleaned,
            "remaining_sessions": agent.sessions.stats()["total_sessions"]
        }

    @app.get("/api/sessions/stats")
    async def get_session_stats(agent: BookingAgent = Depends(get_agent)):
        return agent.sessions.stats()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = validate_config_on_startup()
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower()
    )
