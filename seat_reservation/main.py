import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request, Response

from .config import get_settings
from .database import build_engine, build_session_factory, create_schema
from .infrastructure.repositories import SqlAlchemyReservationStore
from .routers import reservations, seats
from .utils.request_id import REQUEST_ID_HEADER, resolve_request_id, set_request_id
from .utils.time import wall_clock


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    engine = build_engine(settings)
    try:
        if settings.create_schema:
            await create_schema(engine)
        app.state.store = SqlAlchemyReservationStore(build_session_factory(engine))
        app.state.clock = wall_clock(ZoneInfo(settings.timezone))
        yield
    finally:
        await engine.dispose()


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app = FastAPI(title="Seat Reservation API", lifespan=lifespan)
app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(seats.router)
app.include_router(reservations.router)
