import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from farmestly.api.reports import router as reports_router
from farmestly.container import Container

logger = logging.getLogger("farmestly.api")

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s - %(message)s"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    container = Container()
    app.state.container = container

    render_pool = container.render_pool()
    await render_pool.initialize()

    email_queue = container.email_queue()
    try:
        await email_queue.start()
    except Exception:
        # Downloads keep working without mail; e-mail jobs fail with EMAIL_QUEUE_UNAVAILABLE.
        logger.exception("E-mail queue failed to start")

    yield

    await email_queue.shutdown()
    await render_pool.shutdown()
    engine = container.engine()
    await engine.dispose()


app = FastAPI(title="Farmestly Reports", version="0.1.0", lifespan=lifespan)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled error on %s %s:\n%s", request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": "INTERNAL_ERROR"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reports_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}
