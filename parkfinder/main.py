from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from parkfinder.config import Settings, settings as default_settings
from parkfinder.context import AppContext
from parkfinder.errors import DataFormatError, DataSourceError, NotFoundError
from parkfinder.models import (
    LocationUpdate,
    Notification,
    ParkingSpot,
    PresentationSnapshot,
    SpotCandidate,
    SpotDetail,
    SpotUpdate,
    ViewUpdate,
)

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def create_app(context: AppContext | None = None, settings: Settings | None = None) -> FastAPI:
    # Load data and resolve a location on startup
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx: AppContext = app.state.context
        try:
            spots = await ctx.load()
            logger.info("Successfully loaded %d parking spots from %s", len(spots), ctx.source.name)
        except (DataFormatError, DataSourceError) as e:
            # The error panel is already published; keep serving so the UI can show it
            logger.error("Error loading parking data: %s", e)
        await ctx.locate()
        yield

    app = FastAPI(title="Parking Spot Finder API", version="0.1.0", lifespan=lifespan)
    app.state.context = context or AppContext(settings or default_settings)

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Handlers are async so every state mutation runs on the event loop thread
    @app.get("/health")
    async def health(ctx: AppContext = Depends(get_context)):
        return {
            "status": "ok" if ctx.load_error is None else "degraded",
            "spots_loaded": len(ctx.store),
        }

    @app.get("/view", response_model=PresentationSnapshot)
    async def get_view(ctx: AppContext = Depends(get_context)) -> PresentationSnapshot:
        return ctx.snapshot

    @app.patch("/view", response_model=PresentationSnapshot)
    async def update_view(update: ViewUpdate, ctx: AppContext = Depends(get_context)) -> PresentationSnapshot:
        """
        Change the active filter and/or sort key.

        - **filter**: "all" or a category; unknown categories give an empty view
        - **sort**: distance, price, name or default (insertion order)
        """
        if update.filter is not None:
            ctx.set_filter(update.filter)
        if update.sort is not None:
            ctx.set_sort(update.sort)
        return ctx.snapshot

    @app.put("/location", response_model=PresentationSnapshot)
    async def set_location(location: LocationUpdate, ctx: AppContext = Depends(get_context)) -> PresentationSnapshot:
        return ctx.set_user_location(location)

    @app.post("/slideshow/next", response_model=PresentationSnapshot)
    async def slideshow_next(ctx: AppContext = Depends(get_context)) -> PresentationSnapshot:
        return ctx.show_next()

    @app.post("/slideshow/previous", response_model=PresentationSnapshot)
    async def slideshow_previous(ctx: AppContext = Depends(get_context)) -> PresentationSnapshot:
        return ctx.show_previous()

    @app.get("/categories", response_model=list[str])
    async def list_categories(ctx: AppContext = Depends(get_context)) -> list[str]:
        return ctx.categories()

    @app.get("/spots", response_model=list[ParkingSpot])
    async def list_spots(ctx: AppContext = Depends(get_context)) -> list[ParkingSpot]:
        return ctx.store.all()

    @app.get("/spots/{spot_id}", response_model=SpotDetail)
    async def get_spot(spot_id: int, ctx: AppContext = Depends(get_context)) -> SpotDetail:
        try:
            return ctx.spot_detail(spot_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.post("/spots", response_model=ParkingSpot, status_code=status.HTTP_201_CREATED)
    async def create_spot(candidate: SpotCandidate, ctx: AppContext = Depends(get_context)) -> ParkingSpot:
        try:
            return ctx.create_spot(candidate)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.patch("/spots/{spot_id}", response_model=ParkingSpot)
    async def update_spot(spot_id: int, update: SpotUpdate, ctx: AppContext = Depends(get_context)) -> ParkingSpot:
        try:
            return ctx.update_spot(spot_id, update.to_fields())
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.delete("/spots/{spot_id}")
    async def delete_spot(spot_id: int, ctx: AppContext = Depends(get_context)) -> dict:
        return {"deleted": ctx.delete_spot(spot_id)}

    @app.post("/actions/{action}/{spot_id}")
    async def dispatch_action(action: str, spot_id: int, ctx: AppContext = Depends(get_context)) -> Any:
        """Single entry point for map marker and card intents (select, details, edit, delete)."""
        try:
            result = ctx.dispatch(action, spot_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if isinstance(result, bool):
            return {"deleted": result}
        return result.model_dump()

    @app.post("/reload", response_model=PresentationSnapshot)
    async def reload(ctx: AppContext = Depends(get_context)) -> PresentationSnapshot:
        try:
            await ctx.load()
        except (DataFormatError, DataSourceError) as e:
            raise HTTPException(status_code=502, detail=str(e))
        return ctx.snapshot

    @app.get("/theme")
    async def get_theme(ctx: AppContext = Depends(get_context)) -> dict:
        return {"theme": ctx.theme.current, "toggle_label": ctx.theme.toggle_label}

    @app.post("/theme/toggle")
    async def toggle_theme(ctx: AppContext = Depends(get_context)) -> dict:
        ctx.theme.toggle()
        return {"theme": ctx.theme.current, "toggle_label": ctx.theme.toggle_label}

    @app.get("/notifications", response_model=list[Notification])
    async def drain_notifications(ctx: AppContext = Depends(get_context)) -> list[Notification]:
        return ctx.notifications.drain()

    return app


app = create_app()
