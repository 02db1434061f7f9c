import asyncio
import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from clipper.routers.export import router as export_router
from clipper.limiter import limiter
from clipper.routers.topics import router as topics_router
from clipper.state import BOOTSTRAP_TOPIC_ID, build_state

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": "INFO", "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed the board with the demo topic and search it in the background."""
    state = app.state.clipper
    name = state.settings.BOOTSTRAP_TOPIC
    task = None
    if name and state.board.get_topic(BOOTSTRAP_TOPIC_ID) is None:
        state.board.add_topic(name, description_label="Demo Subject", topic_id=BOOTSTRAP_TOPIC_ID)
        task = asyncio.create_task(state.populate_topic(BOOTSTRAP_TOPIC_ID, name))
    yield
    if task is not None and not task.done():
        task.cancel()


app = FastAPI(
    title="Public Domain Clipper",
    description=(
        "Collects public-domain images for a subject from museum, library and "
        "space-agency archives, isolates subjects with AI background removal, "
        "and packages selections as ZIP archives."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.state.clipper = build_state()

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(topics_router)
app.include_router(export_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from Public Domain Clipper"}
