"""
FastAPI application exposing sync passes to an external scheduler.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..connectors import CONNECTOR_REGISTRY, create_gateway_from_env
from ..connectors.base import RecordGateway
from ..core.config import SyncSettings, get_optional_env, setup_logging
from ..engine.sync import SyncEngine
from ..exceptions import RaintreeSyncException
from ..models.records import RecordKind
from ..models.sync import SyncPassReport, SyncStatus
from ..services.store import MappingStore, create_mapping_store

logger = logging.getLogger(__name__)


def _init_services(app: FastAPI) -> None:
    """Fill in any service not injected by the caller from the environment."""
    state = app.state
    try:
        settings = SyncSettings.from_env()
    except RaintreeSyncException as e:
        logger.error(f"Invalid configuration, services left uninitialized: {e}")
        return

    if state.engine is None:
        state.engine = SyncEngine(max_workers=settings.max_workers)
        logger.info("Sync engine initialized successfully")

    if state.store is None:
        try:
            state.store = create_mapping_store(settings)
            logger.info("Mapping store initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize mapping store: {e}")

    for side in ("partner", "raintree"):
        if getattr(state, side) is None:
            try:
                setattr(state, side, create_gateway_from_env(side, settings))
                logger.info(f"{side.capitalize()} gateway initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize {side} gateway: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(get_optional_env("LOG_LEVEL", "INFO"))
    _init_services(app)
    logger.info("Application startup complete")
    yield
    logger.info("Application shutdown")


def create_app(
    engine: Optional[SyncEngine] = None,
    store: Optional[MappingStore] = None,
    partner: Optional[RecordGateway] = None,
    raintree: Optional[RecordGateway] = None,
) -> FastAPI:
    """
    Build the API application.

    Services passed in are used as-is; the rest are created from the
    environment at startup.
    """
    app = FastAPI(
        title="Raintree Sync API",
        description="Bi-directional Opportunity and Lead sync between the Partner and Raintree orgs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.store = store
    app.state.partner = partner
    app.state.raintree = raintree

    allowed_origins_str = os.getenv("ALLOWED_ORIGINS", "")
    allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


# Dependency injection
def get_engine(request: Request) -> SyncEngine:
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(status_code=503, detail="Sync engine not initialized")
    return engine


def get_store(request: Request) -> MappingStore:
    store = request.app.state.store
    if store is None:
        raise HTTPException(status_code=503, detail="Mapping store not initialized")
    return store


def get_gateways(request: Request) -> Dict[str, RecordGateway]:
    partner, raintree = request.app.state.partner, request.app.state.raintree
    if partner is None or raintree is None:
        raise HTTPException(status_code=503, detail="Partner and Raintree gateways are not configured")
    return {"partner": partner, "raintree": raintree}


def parse_kind(kind: str) -> RecordKind:
    try:
        return RecordKind(kind.lower())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown record kind: {kind}")


def _persist(store: MappingStore, report: SyncPassReport) -> None:
    """Write back the mappings of every record processed in the pass."""
    if report.status != SyncStatus.COMPLETED or report.dry_run:
        return
    processed = {result.record_id for result in report.results}
    store.put_many(report.kind, {
        partner_id: mapping for partner_id, mapping in report.updated_mappings.items()
        if partner_id in processed
    })


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health_check(request: Request) -> Dict[str, Any]:
        """Check the health of the application and its services."""
        state = request.app.state
        return {
            "status": "healthy",
            "version": __version__,
            "services": {
                "engine": state.engine is not None,
                "store": state.store is not None,
                "partner": state.partner is not None,
                "raintree": state.raintree is not None,
            },
            "passes": {
                kind.value: state.engine.state(kind).value for kind in RecordKind
            } if state.engine is not None else {},
        }

    @app.get("/api/v1/connectors")
    def list_connectors() -> Dict[str, Any]:
        """List registered gateway sides."""
        return {
            "connectors": list(CONNECTOR_REGISTRY.keys()),
            "details": {
                name: {
                    "class": gateway_class.__name__,
                    "module": gateway_class.__module__
                }
                for name, gateway_class in CONNECTOR_REGISTRY.items()
            }
        }

    @app.post("/api/v1/sync/{kind}")
    def run_sync_pass(
        kind: str,
        engine: SyncEngine = Depends(get_engine),
        store: MappingStore = Depends(get_store),
        gateways: Dict[str, RecordGateway] = Depends(get_gateways),
    ) -> Dict[str, Any]:
        """Run one sync pass for a record kind and persist the updated mappings."""
        record_kind = parse_kind(kind)
        try:
            mappings = store.get(record_kind)
            report = engine.run_sync_pass(record_kind, gateways["partner"], gateways["raintree"], mappings)
            if report.status == SyncStatus.SKIPPED:
                raise HTTPException(status_code=409, detail=f"A {record_kind.value} sync pass is already running")
            _persist(store, report)
            return report.to_response()
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to run {record_kind.value} sync pass: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/api/v1/sync")
    def run_full_sync(
        engine: SyncEngine = Depends(get_engine),
        store: MappingStore = Depends(get_store),
        gateways: Dict[str, RecordGateway] = Depends(get_gateways),
    ) -> Dict[str, Any]:
        """Run the Opportunity and Lead passes concurrently and persist both."""
        try:
            mappings = {kind: store.get(kind) for kind in RecordKind}
            run = engine.run_all(gateways["partner"], gateways["raintree"], mappings)
            for report in (run.opportunities, run.leads):
                _persist(store, report)
            return {"success": True, "message": "Bi-directional sync completed", "data": run.to_response()}
        except Exception as e:
            logger.error(f"Failed to run sync: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/api/v1/mappings/{kind}")
    def list_mappings(kind: str, store: MappingStore = Depends(get_store)) -> Dict[str, Any]:
        """Stored mappings for a record kind."""
        record_kind = parse_kind(kind)
        try:
            mappings = store.get(record_kind)
        except Exception as e:
            logger.error(f"Failed to load {record_kind.value} mappings: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {
            "kind": record_kind.value,
            "total": len(mappings),
            "mappings": {partner_id: mapping.to_store() for partner_id, mapping in mappings.items()},
        }


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
