from __future__ import annotations

import contextlib
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from savecache import DataManager, FlushError, InvalidStateError, get_settings
from savecache.lifecycle import lifespan as savecache_lifespan, on_focus_changed

logger = logging.getLogger(__name__)


class GoodsSaveData(BaseModel):
    gold: int = 0


class GoldUpdate(BaseModel):
    gold: int


class FocusUpdate(BaseModel):
    focused: bool


def create_app(manager: DataManager | None = None) -> FastAPI:
    load_dotenv("local.env")
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    data = manager or DataManager.from_settings(settings)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        async with savecache_lifespan(data, preload=[GoodsSaveData]):
            yield

    app = FastAPI(lifespan=lifespan)
    app.state.data_manager = data

    @app.exception_handler(InvalidStateError)
    async def invalid_state_handler(request: Request, exc: InvalidStateError):
        return JSONResponse({"detail": str(exc)}, status_code=409)

    @app.exception_handler(FlushError)
    async def flush_error_handler(request: Request, exc: FlushError):
        logger.error("flush failed: %s", exc)
        return JSONResponse(
            {"detail": str(exc), "failed": sorted(exc.failures)},
            status_code=500,
        )

    @app.get("/goods")
    async def get_goods():
        goods = await data.load(GoodsSaveData)
        return goods.model_dump(mode="json")

    @app.post("/goods/gold")
    async def set_gold(update: GoldUpdate):
        goods = await data.load(GoodsSaveData)
        goods.gold = update.gold
        data.mark_dirty(GoodsSaveData)
        return goods.model_dump(mode="json")

    @app.post("/goods/unload")
    async def unload_goods():
        return {"unloaded": await data.unload(GoodsSaveData)}

    @app.post("/flush")
    async def flush():
        return {"written": await data.flush_all()}

    @app.post("/focus")
    async def focus_changed(update: FocusUpdate):
        return {"written": await on_focus_changed(data, update.focused)}

    @app.get("/records")
    async def records():
        cache = data.cache
        return {
            "stored": await data.stored_names(),
            "loaded": cache.loaded_names(),
            "dirty": cache.dirty_names(),
        }

    return app


app = create_app()
