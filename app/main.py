from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from config.settings import Settings, get_settings
from relay.errors import RelayError
from relay.gemini_client import GeminiClient
from relay.messages import ChatReply, ChatRequest, SummarizeRequest
from relay.reliability import ChatService, Sleep
from relay.summarize import SummarizeService


logger = logging.getLogger("rpg_relay")

router = APIRouter()


@router.post("/chat", response_model=ChatReply)
async def chat(req: ChatRequest, request: Request) -> ChatReply:
    if not req.messages:
        raise HTTPException(
            status_code=400,
            detail='Request body must include a non-empty "messages" array.',
        )

    logger.info("Incoming chat: history_turns=%s", len(req.messages))
    service: ChatService = request.app.state.chat_service
    try:
        reply = await service.get_reply(req.messages)
    except RelayError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
    except Exception as e:
        logger.exception("Chat processing failed: %s", e)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred while contacting the AI service.",
        )

    logger.info("Model responded: %s chars", len(reply.content))
    return reply


@router.post("/summarize", response_model=ChatReply)
async def summarize(req: SummarizeRequest, request: Request) -> ChatReply:
    if not req.messages:
        raise HTTPException(
            status_code=400,
            detail='Request body must include a non-empty "messages" array.',
        )

    logger.info(
        "Incoming summarize: window_turns=%s has_summary=%s",
        len(req.messages),
        bool(req.existingSummary),
    )
    service: SummarizeService = request.app.state.summarize_service
    try:
        summary = await service.summarize(req.messages, req.existingSummary)
    except RelayError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
    except Exception as e:
        logger.exception("Summarization failed: %s", e)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred while contacting the AI service.",
        )

    return ChatReply(content=summary)


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[GeminiClient] = None,
    sleep: Sleep = asyncio.sleep,
) -> FastAPI:
    settings = settings or get_settings()
    client = client or GeminiClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Config: model=%s env=%s max_retries=%s",
            settings.gemini_model,
            settings.app_env,
            settings.max_retries,
        )
        yield
        await client.aclose()

    app = FastAPI(title="RPG Chat Relay", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.chat_service = ChatService(client, sleep=sleep)
    app.state.summarize_service = SummarizeService(client, sleep=sleep)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_origin_regex=settings.cors_origin_regex or None,
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level, format="[%(asctime)s] %(levelname)s - %(message)s"
    )
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
