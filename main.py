from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from shared.config.database import LedgerStore
from shared.config.settings import Settings
from shared.errors import ErrorCode, http_status_for
from shared.observability import setup_observability
from shared.security import resolve_internal_api_key

from services.audit_service.router import router as audit_router
from services.audit_service.service import ConsistencyAuditor
from services.authorization_service.provider import ProviderClient
from services.authorization_service.router import router as authorize_router
from services.authorization_service.service import AuthorizationWorkflow
from services.order_service.router import router as orders_router
from services.order_service.service import OrderService
from services.settlement_service.router import router as settlements_router
from services.settlement_service.service import SettlementEngine

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    store: LedgerStore | None = None,
    provider: ProviderClient | None = None,
) -> FastAPI:
    """
    Builds the ledger API. The store and provider are created from settings
    unless handed in (tests pass a temporary database and a mock provider).
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ledger_store = store or LedgerStore(settings.database_url, echo=settings.db_echo)
        provider_client = provider or ProviderClient(
            settings.provider_base_url, timeout=settings.provider_timeout_seconds
        )
        await ledger_store.create_all()

        app.state.store = ledger_store
        app.state.order_service = OrderService(ledger_store)
        app.state.authorization_workflow = AuthorizationWorkflow(
            ledger_store, provider_client, token_prefix=settings.static_token_prefix
        )
        app.state.settlement_engine = SettlementEngine(ledger_store)
        app.state.auditor = ConsistencyAuditor(ledger_store)
        logger.info("ledger_api_started", provider_base=settings.provider_base_url)
        try:
            yield
        finally:
            if store is None:
                await ledger_store.dispose()

    app = FastAPI(title="Payments Ledger", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.internal_api_key = resolve_internal_api_key(settings.internal_api_key)

    # --- OBSERVABILITY BOOTSTRAP ---
    setup_observability(app, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def bad_request_handler(request: Request, exc: RequestValidationError):
        code = ErrorCode.BAD_REQUEST
        return JSONResponse(status_code=http_status_for(code), content={"code": code.value})

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        code = ErrorCode.SERVER_ERROR
        return JSONResponse(status_code=http_status_for(code), content={"code": code.value})

    @app.get("/", include_in_schema=False)
    async def root():
        return PlainTextResponse("API is running. See /health and /api/* routes.")

    @app.get("/health")
    async def health_check():
        return {
            "ok": True,
            "service": settings.service_name,
            "providerBase": settings.provider_base_url,
            "time": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(orders_router, prefix="/api/orders", tags=["orders"])
    app.include_router(settlements_router, prefix="/api/settlements", tags=["settlements"])
    app.include_router(authorize_router, prefix="/api/authorize", tags=["authorize"])
    app.include_router(audit_router, prefix="/api/audit", tags=["audit"])
    return app
