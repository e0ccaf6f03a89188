"""HTTP surface: Discord interactions endpoint and sync triggers.

Routes:
    POST /interactions     Signed Discord interaction callbacks.
    GET  /interactions     Liveness check for the interactions URL.
    POST /sync/run         Manual trigger; optional ``mappingId``; errors verbatim.
    GET  /sync/run         Mapping counts, last sync time, recent errors.
    GET|POST /cron/sync    Scheduled trigger; counts only.
    GET  /sync/log         Operation log read model.
    GET  /health           Process liveness.

Trigger routes require ``Authorization: Bearer <cron secret>`` when a
secret is configured.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..errors import ValidationError
from ..services import RelayServices
from ..sync.reporter import log_summary_to_json, result_to_json

logger = logging.getLogger(__name__)


class SyncRunRequest(BaseModel):
    mapping_id: str | None = Field(default=None, alias="mappingId")

    model_config = {"populate_by_name": True}


def create_app(services: RelayServices) -> FastAPI:
    """Build the FastAPI application around an already-built service graph."""
    app = FastAPI(title="issue-relay", version=__version__)
    app.state.services = services

    def require_trigger_secret(
        authorization: str | None = Header(default=None),
    ) -> None:
        secret = services.config.cron_secret
        if not secret:
            return
        if not secrets.compare_digest(authorization or "", f"Bearer {secret}"):
            logger.warning("Rejected sync trigger with bad or missing credentials")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
            )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    @app.get("/interactions")
    async def interactions_ready() -> dict:
        return {"status": "ok", "message": "Interactions endpoint ready"}

    @app.post("/interactions")
    async def interactions(request: Request) -> JSONResponse:
        body = await request.body()
        response = await services.interactions.handle(
            body,
            request.headers.get("X-Signature-Ed25519"),
            request.headers.get("X-Signature-Timestamp"),
        )
        return JSONResponse(response.payload, status_code=response.status_code)

    @app.post("/sync/run", dependencies=[Depends(require_trigger_secret)])
    async def sync_run(payload: SyncRunRequest | None = None) -> dict:
        mapping_id = payload.mapping_id if payload else None
        try:
            if mapping_id:
                result = await services.engine.run_mapping(mapping_id)
            else:
                result = await services.engine.run_full()
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return result_to_json(result)

    @app.get("/sync/run", dependencies=[Depends(require_trigger_secret)])
    async def sync_stats() -> dict:
        return {"stats": services.stats()}

    @app.api_route(
        "/cron/sync",
        methods=["GET", "POST"],
        dependencies=[Depends(require_trigger_secret)],
    )
    async def cron_sync() -> dict:
        result = await services.engine.run_full()
        return result_to_json(result, include_errors=False)

    @app.get("/sync/log")
    async def sync_log(limit: int = Query(default=10, ge=1, le=100)) -> dict:
        return log_summary_to_json(services.oplog.summary(limit))

    return app
