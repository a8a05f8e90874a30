"""
Support chat: broadcast WebSocket plus a single-turn REST endpoint.
"""

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from loguru import logger

from simdesk.config import settings
from simdesk.middleware.rate_limit import CHAT_RATE_LIMIT, limiter
from simdesk.models.schemas import AskRequest, AskResponse
from simdesk.services.broadcaster import ChatBroadcaster, ChatSession
from simdesk.services.matcher import best_match, compose_reply

router = APIRouter(tags=["chat"])


@router.post("/api/chat/ask", response_model=AskResponse)
@limiter.limit(CHAT_RATE_LIMIT)
async def ask(request: Request, req: AskRequest):
    """Answer one message without broadcasting it to the live chat."""
    bank = request.app.state.question_bank
    result = best_match(
        req.message, bank,
        threshold=settings.MATCH_THRESHOLD,
        short_input_length=settings.SHORT_INPUT_LENGTH,
    )
    return AskResponse(
        message=req.message,
        reply=compose_reply(result.answer),
        matched=result.matched,
        score=round(result.score, 4),
        question=bank[result.index].question if result.matched else None,
    )


@router.websocket("/ws/chat")
async def chat_websocket(websocket: WebSocket):
    broadcaster: ChatBroadcaster = websocket.app.state.broadcaster
    await websocket.accept()

    session = ChatSession(
        websocket,
        queue_size=settings.SESSION_QUEUE_SIZE,
        send_timeout=settings.SEND_TIMEOUT_SECONDS,
    )
    await broadcaster.connect(session)

    try:
        while True:
            text = await websocket.receive_text()
            await broadcaster.handle_message(session, text)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Chat session {session.id[:8]} error: {e}")
    finally:
        await broadcaster.disconnect(session)
