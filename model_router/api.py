"""
HTTP layer wrapping a ModelRouter

The router is a library; this module only exposes its inbound surface over
FastAPI using the pydantic schemas in model_router.schemas.
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from model_router import __version__
from model_router.config import RouterSettings
from model_router.errors import AIErrorCode, RouterError, ProviderError
from model_router.router import ModelRouter
from model_router.telemetry import RoutingTelemetry
from model_router.probes import HttpProbe
from model_router.schemas import (
    AIRequestSchema,
    AIResponseSchema,
    BalanceRequestSchema,
    ErrorSchema,
    HealthStatusSchema,
    ModelConfigurationSchema,
    ModelSelectionSchema,
    PerformanceObservationSchema,
    PerformanceRecordSchema,
    RouteRequestSchema,
    RoutingPlanSchema,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    AIErrorCode.MODEL_UNAVAILABLE: 503,
    AIErrorCode.PRIVACY_VIOLATION: 403,
    AIErrorCode.PROVIDER_ERROR: 502,
}


def create_app(router: Optional[ModelRouter] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        router: Router to expose; a default one is created if omitted

    Returns:
        FastAPI app with the router attached as app.state.router
    """
    router = router or ModelRouter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        router.telemetry.flush()
        logger.info("Model router API stopped; telemetry flushed")

    app = FastAPI(title="AI Model Router", version=__version__, lifespan=lifespan)
    app.state.router = router

    @app.exception_handler(RouterError)
    async def handle_router_error(request: Request, exc: RouterError):
        body = ErrorSchema(**exc.to_dict())
        return JSONResponse(status_code=ERROR_STATUS.get(exc.code, 500), content=body.model_dump())

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"message": str(exc)})

    @app.post("/models", response_model=ModelConfigurationSchema, status_code=201)
    async def register_model(body: ModelConfigurationSchema):
        model = router.register(body.to_model())
        return ModelConfigurationSchema.from_model(model)

    @app.get("/models", response_model=List[ModelConfigurationSchema])
    async def list_models():
        return [ModelConfigurationSchema.from_model(m) for m in router.list_models()]

    @app.delete("/models/{model_id}", status_code=204)
    async def unregister_model(model_id: str):
        if not router.unregister(model_id):
            raise HTTPException(status_code=404, detail=f"Model '{model_id}' not found")

    @app.get("/models/{model_id}/health", response_model=HealthStatusSchema)
    async def model_health(model_id: str):
        if model_id not in router.registry:
            raise HTTPException(status_code=404, detail=f"Model '{model_id}' not found")
        return HealthStatusSchema.from_status(await router.health_check(model_id))

    @app.post("/select", response_model=ModelSelectionSchema)
    async def select_model(body: AIRequestSchema):
        selection = await router.select_model(body.to_request())
        return ModelSelectionSchema.from_selection(selection)

    @app.post("/route", response_model=AIResponseSchema)
    async def route_request(body: RouteRequestSchema):
        ai_request = body.request.to_request()
        if body.selection is not None:
            selection = body.selection.to_selection()
        else:
            selection = await router.select_model(ai_request)

        try:
            response = await router.route_request(ai_request, selection)
        except ProviderError:
            if not body.failover:
                raise
            response = await router.handle_failover(selection.model_id, ai_request)
        return AIResponseSchema.from_response(response)

    @app.post("/balance", response_model=RoutingPlanSchema)
    async def balance_load(body: BalanceRequestSchema):
        plan = await router.balance_load([r.to_request() for r in body.requests])
        return RoutingPlanSchema.from_plan(plan)

    @app.post("/performance", response_model=PerformanceRecordSchema)
    async def record_performance(body: PerformanceObservationSchema):
        record = router.record_performance(
            body.model_id,
            body.task_type,
            latency=body.latency,
            cost=body.cost,
            quality=body.quality,
            success=body.success,
        )
        return PerformanceRecordSchema.from_record(record)

    @app.get("/stats")
    async def stats() -> Dict[str, Any]:
        return {
            "routing": router.get_routing_stats(),
            "models": router.get_model_usage_stats(),
            "load_distribution": router.load_balancer.get_request_counts(),
        }

    return app


def configure_logging(level: str = "INFO"):
    # package modules already installed a root handler at import
    logging.basicConfig(level=level.upper(), force=True)


def main():
    load_dotenv()
    configure_logging(os.getenv("MODEL_ROUTER_LOG_LEVEL", "INFO"))

    settings = RouterSettings.from_env()
    router = ModelRouter(
        settings=settings,
        probe=HttpProbe(timeout=float(os.getenv("MODEL_ROUTER_PROBE_TIMEOUT", "5.0"))),
        telemetry=RoutingTelemetry(),
    )
    host = os.getenv("MODEL_ROUTER_HOST", "0.0.0.0")
    port = int(os.getenv("MODEL_ROUTER_PORT", "8080"))
    logger.info(f"Starting model router API on {host}:{port}")
    uvicorn.run(create_app(router), host=host, port=port)


if __name__ == "__main__":
    main()
