# main.py
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from config import Settings
from models import Order, OrderInput, OrderUpdate
from store import OrderNotFound, OrderStore, StorageFailure, select_store

logger = logging.getLogger(__name__)


def get_store(request: Request) -> OrderStore:
    return request.app.state.store


def create_app(settings: Settings | None = None, store: OrderStore | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    store = store or select_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.store.close()

    app = FastAPI(title="WorldChange Orders", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_payload(request: Request, exc: RequestValidationError):
        # the matched route is in the scope even when its payload failed to parse
        creating = request.scope.get("endpoint") is create_order
        message = "missing fields" if creating else "invalid payload"
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        return JSONResponse(status_code=400, content={"message": message, "errors": errors})

    @app.exception_handler(OrderNotFound)
    async def order_not_found(request: Request, exc: OrderNotFound):
        return JSONResponse(status_code=404, content={"message": "not found"})

    @app.exception_handler(StorageFailure)
    async def storage_failure(request: Request, exc: StorageFailure):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "server error"})

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "WorldChange backend is running"

    @app.get("/api/orders", response_model=list[Order])
    def list_orders(store: OrderStore = Depends(get_store)):
        return store.list()

    @app.post("/api/orders", response_model=Order)
    def create_order(payload: OrderInput, store: OrderStore = Depends(get_store)):
        return store.create(payload)

    @app.put("/api/orders/{order_id}", response_model=Order)
    def update_order(order_id: int, payload: OrderUpdate, store: OrderStore = Depends(get_store)):
        return store.update_status(order_id, payload)

    @app.get("/api/ping")
    def ping(store: OrderStore = Depends(get_store)):
        return {"ok": True, "env": store.env}

    return app


def run(settings: Settings | None = None):
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)
    logger.info("Server listening on port %d (%s)", settings.port, app.state.store.env)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
