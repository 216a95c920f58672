# Run from project root: uvicorn ragchat.main:app --reload

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI

from ragchat.api.routes import router
from ragchat.core.runtime import AgentRuntime, build_runtime
from ragchat.mcp.server import mcp_router

logging.basicConfig(level=logging.INFO)


def create_app(runtime_factory: Callable[[], AgentRuntime] = build_runtime) -> FastAPI:
    """Runtime is built when the app starts and closed when it shuts down."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.runtime = runtime_factory()
        try:
            yield
        finally:
            await app.state.runtime.close()
            app.state.runtime = None

    app = FastAPI(title="Agentic Document Q&A Backend", lifespan=lifespan)
    app.include_router(router)
    app.include_router(mcp_router, prefix="/mcp")
    return app


app = create_app()
