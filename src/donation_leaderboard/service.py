"""Leaderboard API: render the leaderboard (GET /leaderboard), order status hook (POST /order-status)."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Mapping

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse

from donation_leaderboard import order_db
from donation_leaderboard.cache import order_cache
from donation_leaderboard.config import leaderboard_settings
from donation_leaderboard.loader import OrderCacheLoader
from donation_leaderboard.renderer import LeaderboardRenderer, select_orders
from donation_leaderboard.schemas import Received, RenderRequest, StatusChange

logger = logging.getLogger(__name__)

SHORTCODE_ATTRIBUTES = ("limit", "ids", "title", "subtitle", "orderby", "style", "split")


def _log_packet(route: str, kind: str, payload: dict) -> None:
    logger.info("%s %s packet:\n%s", route, kind, json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _is_background_request(request: Request) -> bool:
    return request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"


def leaderboard_shortcode(
    attributes: Mapping[str, Any],
    loader: OrderCacheLoader,
    renderer: LeaderboardRenderer,
    in_background: bool = False,
) -> str:
    """Render the leaderboard for a flat attribute map; any failure yields ""."""
    if in_background:
        return ""

    request = RenderRequest.from_attributes(attributes)
    try:
        orders = loader.get_orders(request.order_by)
        selected = select_orders(orders, request.product_ids, request.limit)
        return renderer.render(selected, request.title, request.subtitle, request.style, request.split)
    except Exception as e:
        logger.exception("Leaderboard render failed: %s", e)
        return ""


def create_app(
    loader: OrderCacheLoader | None = None,
    renderer: LeaderboardRenderer | None = None,
    init_store: bool = True,
) -> FastAPI:
    """Wire the status-change handler and the leaderboard entry point into a FastAPI app."""
    if loader is None or renderer is None:
        settings = leaderboard_settings()
        loader = loader or OrderCacheLoader(order_db.fetch_completed_orders, order_cache, settings)
        renderer = renderer or LeaderboardRenderer(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if init_store:
            order_db.init_db()
        logger.info("leaderboard service startup")
        try:
            yield
        finally:
            logger.info("leaderboard service shutdown")

    app = FastAPI(
        title="Donation Leaderboard API",
        version="1.0.0",
        description="Leaderboard of recent donations",
        lifespan=lifespan,
    )
    app.state.loader = loader
    app.state.renderer = renderer

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Invalid status payload: %s", exc.errors())
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid status payload", "errors": json.loads(json.dumps(exc.errors(), default=str))},
        )

    @app.get("/leaderboard", response_class=HTMLResponse)
    def leaderboard(request: Request) -> HTMLResponse:
        attributes = {key: request.query_params[key] for key in SHORTCODE_ATTRIBUTES if key in request.query_params}
        _log_packet("GET /leaderboard", "request", attributes)
        html = leaderboard_shortcode(attributes, loader, renderer, in_background=_is_background_request(request))
        return HTMLResponse(content=html)

    @app.post("/order-status", response_model=Received)
    def order_status(body: StatusChange) -> Received:
        _log_packet("POST /order-status", "request", body.model_dump(mode="json"))
        loader.on_order_status_changed(body.order_id, body.old_status, body.new_status)
        return Received(message="OK")

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "ok"}

    return app
