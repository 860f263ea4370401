import json
import os
from typing import Any, AsyncIterator, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse

from ..core.config_manager import ConfigManager
from ..core.error_handling import ErrorHandler, ErrorContext
from ..core.exceptions import ChatServiceError
from ..core.logging import logger
from ..providers.base import ChatCompletionStream
from ..services.chat_service import ChatService
from .middleware import RequestLoggerMiddleware


async def _parse_chat_request(request: Request, context: ErrorContext) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        raise ErrorHandler.handle_invalid_request_format(context, e)
    if not isinstance(body, dict):
        raise ErrorHandler.handle_invalid_request_format(context)

    context.user_id = body.get("user")
    context.chat_type = body.get("chat_type") or None
    if not isinstance(body.get("user"), str) or not body["user"]:
        raise ErrorHandler.handle_user_not_specified(context)
    if not isinstance(body.get("content"), str) or not body["content"]:
        raise ErrorHandler.handle_content_not_specified(context)
    return body


async def _sse_events(stream: ChatCompletionStream, context: ErrorContext) -> AsyncIterator[str]:
    """Wrap provider chunks as server-sent events, ending with [DONE]."""
    try:
        async for chunk in stream:
            if chunk:
                yield f"data: {json.dumps({'content': chunk}, ensure_ascii=False)}\n\n"
    except Exception as e:
        logger.error(f"Stream interrupted: {e}", **context.to_log_extra())
        error_event = {"error": {"message": str(e), "code": "provider_stream_error"}}
        yield f"data: {json.dumps(error_event, ensure_ascii=False)}\n\n"
    yield "data: [DONE]\n\n"


def create_app(chat_service: Optional[ChatService] = None,
               config_manager: Optional[ConfigManager] = None) -> FastAPI:
    """Build the HTTP app.

    Without ``chat_service`` the service and its providers are built from
    the configuration on startup.
    """
    app = FastAPI(title="chat-router")
    app.state.config_manager = config_manager or ConfigManager(os.getenv("CONFIG_DIR", "config"))
    app.state.chat_service = chat_service
    app.state.httpx_client = None
    app.add_middleware(RequestLoggerMiddleware)

    @app.on_event("startup")
    async def startup_event():
        app.state.httpx_client = httpx.AsyncClient()
        if app.state.chat_service is None:
            chat_config = app.state.config_manager.get_chat_config()
            app.state.chat_service = ChatService.from_config(chat_config, app.state.httpx_client)
        app.state.chat_service.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.chat_service is not None:
            await app.state.chat_service.close()
        if app.state.httpx_client is not None:
            await app.state.httpx_client.aclose()

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.post("/v1/chat/completions")
    async def chat_completions(request: Request):
        service: ChatService = app.state.chat_service
        context = ErrorContext(request_id=getattr(request.state, "request_id", None))
        body = await _parse_chat_request(request, context)
        chat_type = body.get("chat_type") or ""
        stream_requested = bool(body.get("stream"))
        scope = logger.request_context("Chat completion", context.request_id, user_id=body["user"],
                                       chat_type=chat_type or None, stream=stream_requested)

        if stream_requested:
            try:
                with scope:
                    stream = await service.chat_completion_stream(chat_type, body["user"], body["content"])
            except ChatServiceError as e:
                raise ErrorHandler.from_service_error(e, context)
            except Exception as e:
                raise ErrorHandler.handle_provider_failure(e, context)
            return StreamingResponse(_sse_events(stream, context), media_type="text/event-stream")

        try:
            with scope:
                content = await service.chat_completion(chat_type, body["user"], body["content"])
        except ChatServiceError as e:
            raise ErrorHandler.from_service_error(e, context)
        return {"content": content}

    @app.get("/v1/quota/{user_id}")
    async def quota_usage(user_id: str):
        service: ChatService = app.state.chat_service
        snapshot = await service.quota.snapshot()
        return {
            "user": user_id,
            "used": snapshot["counts"].get(user_id, 0),
            "limit": service.config.everyday_limit,
            "day": snapshot["day"]
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
