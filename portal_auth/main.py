import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal_auth.api.flow_registry import FlowRegistry
from portal_auth.api.v1 import auth, health, password_reset, tools, views
from portal_auth.config import settings
from portal_auth.dependencies import LoginRedirect
from portal_auth.domain.errors import AuthFlowError
from portal_auth.middleware import (
    ErrorHandlingMiddleware,
    LoggingMiddleware,
    auth_flow_error_handler,
    login_redirect_handler,
)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(registry: Optional[FlowRegistry] = None) -> FastAPI:
    if registry is None:
        registry = FlowRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 {settings.APP_NAME} started; auth backend at {registry.api.base_url}")
        yield
        await registry.close()
        logger.info("🛑 Auth flows closed")

    app = FastAPI(
        title="Innu Portal Auth",
        description="Session and credential lifecycle for the multi-role retail portal",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.flow_registry = registry

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(AuthFlowError, auth_flow_error_handler)
    app.add_exception_handler(LoginRedirect, login_redirect_handler)

    # Mount routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(password_reset.router)
    app.include_router(tools.router)
    app.include_router(views.router)
    app.include_router(views.portal)

    return app

app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    # Get port from environment variable (for deployment) or default to 8000
    port = int(os.getenv("PORT", 8000))
    print(f"🚀 Starting {settings.APP_NAME} on http://localhost:{port}")
    print(f"🔗 Auth backend: {settings.AUTH_API_BASE_URL}")

    uvicorn.run(
        "portal_auth.main:app",
        host="0.0.0.0",
        port=port,
        log_level=settings.LOG_LEVEL.lower(),
    )
