"""FastAPI backend for the Dadafarin legal assistant.

This module is a thin **presentation layer**: it wires the process-scoped
services together in the lifespan and mounts the routers. All business logic
lives in ``dadafarin.application`` so it can be tested without HTTP.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from dadafarin import __version__
from dadafarin.application.exceptions import AssistantError
from dadafarin.application.use_cases.chat import ChatOrchestrator
from dadafarin.application.use_cases.payments import PaymentService
from dadafarin.application.use_cases.subscription import SubscriptionChecker
from dadafarin.config import Settings, get_settings
from dadafarin.domain.protocols import IChatModel, IEmbeddingService
from dadafarin.infrastructure.account_store import AccountStore
from dadafarin.infrastructure.bitpay_client import BitpayClient
from dadafarin.infrastructure.chat_model import PydanticAIChatModel
from dadafarin.infrastructure.conversation_registry import ConversationRegistry
from dadafarin.infrastructure.conversation_store import ConversationStore
from dadafarin.infrastructure.document_loader import DocumentLoader
from dadafarin.infrastructure.embedding_service import OpenAIEmbeddingService
from dadafarin.infrastructure.vector_store import VectorStore
from dadafarin.logging_config import setup_logging
from dadafarin.presentation.routes import assistant, auth, conversations, payments, system
from dadafarin.telemetry import is_observability_active, setup_telemetry

# ---------------------------------------------------------------------------
# Error responses
# ---------------------------------------------------------------------------


async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("{} {} failed: {} ({})", request.method, request.url.path, exc.error, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse(
        status_code=500, content={"error": "Internal server error", "code": "INTERNAL_ERROR"}
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    *,
    embedding_service: IEmbeddingService | None = None,
    chat_model: IChatModel | None = None,
    gateway_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Settings override (defaults to ``get_settings()``).
        embedding_service: Replaces the OpenAI embedding client (tests).
        chat_model: Replaces the DeepSeek chat model (tests).
        gateway_transport: httpx transport for the payment gateway client (tests).
    """
    s = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Set up and tear down services around the application lifetime."""
        if embedding_service is None or chat_model is None:
            s.validate_runtime()

        accounts = AccountStore(db_path=s.db_path, tz=s.timezone)
        accounts.connect()
        accounts.seed_prices(s.default_prices)

        conversation_store = ConversationStore(db_path=s.db_path)
        conversation_store.connect()

        embeddings = embedding_service or OpenAIEmbeddingService.from_settings(
            api_key=s.openai_api_key,
            base_url=s.openai_base_url,
            model=s.embedding_model,
            batch_size=s.embedding_batch_size,
        )
        vector_store = await VectorStore.load_or_create(
            path=s.vector_store_path,
            documents_dir=s.documents_dir,
            embedding_service=embeddings,
            loader=DocumentLoader(chunk_size=s.chunk_size, chunk_overlap=s.chunk_overlap),
            similarity_threshold=s.similarity_threshold,
        )

        registry = ConversationRegistry(
            ttl_seconds=s.conversation_ttl_seconds, max_messages=s.max_messages_in_memory
        )
        registry.start_reaper(s.reaper_interval_seconds)

        model = chat_model or PydanticAIChatModel.from_settings(
            model_name=s.chat_model,
            api_key=s.deepseek_api_key,
            base_url=s.deepseek_base_url,
            instrument=is_observability_active(s),
        )

        gateway_http = httpx.AsyncClient(
            timeout=s.payment_timeout_seconds, transport=gateway_transport
        )

        app.state.settings = s
        app.state.accounts = accounts
        app.state.conversations = conversation_store
        app.state.vector_store = vector_store
        app.state.registry = registry
        app.state.subscriptions = SubscriptionChecker(accounts, tz=s.timezone)
        app.state.chat_uc = ChatOrchestrator(
            conversation_store=conversation_store,
            registry=registry,
            vector_store=vector_store,
            chat_model=model,
            temperature=s.chat_temperature,
            retrieval_k=s.retrieval_k,
            model_timeout=s.model_timeout_seconds,
        )
        app.state.payments = PaymentService(
            accounts=accounts,
            gateway=BitpayClient(
                http=gateway_http,
                api_key=s.bitpay_api_key,
                send_url=s.bitpay_send_url,
                verify_url=s.bitpay_verify_url,
                gateway_url_template=s.bitpay_gateway_url_template,
            ),
            redirect_url=f"{s.public_base_url.rstrip('/')}/api/account/payment-callback",
            rial_multiplier=s.rial_multiplier,
            tz=s.timezone,
        )

        logger.info("Application startup complete | chunks={}", len(vector_store))
        yield

        await registry.stop_reaper()
        registry.clear()
        await gateway_http.aclose()
        conversation_store.close()
        accounts.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Dadafarin Legal Assistant",
        description="Subscription-gated Persian legal assistant with retrieval-augmented streaming chat.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AssistantError, assistant_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(system.router)
    app.include_router(auth.router)
    app.include_router(assistant.router)
    app.include_router(conversations.router)
    app.include_router(payments.router)

    # Instrument FastAPI with observability (no-op when OBSERVABILITY=off)
    setup_telemetry(app, s)
    return app


# Configure loguru before anything else
_settings = get_settings()
setup_logging(level=_settings.log_level, json=_settings.log_json, timezone=_settings.timezone)

app = create_app(_settings)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("dadafarin.main:app", host="0.0.0.0", port=8000, reload=True)
