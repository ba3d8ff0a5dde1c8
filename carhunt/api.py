"""HTTP surface: FastAPI app over the orchestrator.

Endpoints:
  POST /api/scrape-stream  server-sent events, one ``data: <json>`` frame per event
  POST /api/scrape         run to the end, return every record
  GET  /api/sites          enabled sites as they would run
  GET  /health
"""

import json
import logging
import os
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse

from carhunt.core.config import Settings
from carhunt.core.errors import SearchAbortedError
from carhunt.core.schemas import SearchCriteria
from carhunt.pipeline.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CARHUNT_CONFIG"
DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

OrchestratorFactory = Callable[[Settings], Orchestrator]


def load_settings() -> Settings:
    """Settings from ``$CARHUNT_CONFIG`` or the default config path."""
    path = Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    return Settings.from_yaml(path)


def sse_frame(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def create_app(
    settings: Settings | None = None,
    orchestrator_factory: OrchestratorFactory = Orchestrator,
) -> FastAPI:
    """Build the app. Settings are loaded on first use when not given."""
    app = FastAPI(title="car-hunter", version="0.1.0")
    loaded: list[Settings] = [settings] if settings is not None else []

    def orchestrator() -> Orchestrator:
        if not loaded:
            loaded.append(load_settings())
        return orchestrator_factory(loaded[0])

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/sites")
    async def sites() -> dict[str, Any]:
        return {"sites": orchestrator().site_plan()}

    @app.post("/api/scrape")
    async def scrape(criteria: SearchCriteria) -> JSONResponse:
        logger.info("POST /api/scrape (%s)", criteria.describe())
        try:
            records = await orchestrator().search(criteria)
        except SearchAbortedError as e:
            logger.warning("Search aborted: %s", e)
            return JSONResponse(status_code=503, content={"success": False, "error": str(e)})
        return JSONResponse(content={
            "success": True,
            "data": [record.to_wire() for record in records],
        })

    @app.post("/api/scrape-stream")
    async def scrape_stream(criteria: SearchCriteria) -> StreamingResponse:
        logger.info("POST /api/scrape-stream (%s)", criteria.describe())
        runner = orchestrator()

        async def generate() -> AsyncIterator[str]:
            # Closing this generator (client gone) closes the event stream,
            # which cancels the run and releases its browsers.
            async with aclosing(runner.search_stream(criteria)) as events:
                async for event in events:
                    yield sse_frame(event.to_wire())

        return StreamingResponse(
            generate(), media_type="text/event-stream", headers=SSE_HEADERS,
        )

    return app
