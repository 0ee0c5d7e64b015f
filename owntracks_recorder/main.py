# owntracks_recorder/main.py
import logging
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config, db
from .exceptions import RecorderError
from .models import PingResponse
from .services.auth import require_basic_auth
from .services.object_store import ObjectStore
from .services.ingest import router as ingest_router
from .services.query import router as query_router

logger = logging.getLogger("uvicorn.error")
logging.getLogger("owntracks_recorder").setLevel(config.LOG_LEVEL)

# ----------------- FastAPI App Initialization -----------------

app = FastAPI(title="OwnTracks Recorder Service", version=config.API_VERSION,
              dependencies=[Depends(require_basic_auth)])

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.on_event("startup")
async def startup_event():
    db.init_stores()
    ok = await db.ping_db()
    if not ok:
        logger.warning("Could not connect to MongoDB; requests will fail until it is reachable.")


@app.on_event("shutdown")
async def shutdown_event():
    db.close_client()

# ----------------- Error rendering -----------------

@app.exception_handler(RecorderError)
async def recorder_error_handler(request: Request, exc: RecorderError):
    if exc.status_code >= 500:
        logger.error("Error processing %s %s: %s", request.method, request.url.path, exc.message,
                     exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.response_message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail},
                        headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error processing %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})

# ----------------- Routes -----------------

@app.get("/ping", response_model=PingResponse)
async def ping(object_store: ObjectStore = Depends(db.get_object_store)):
    storage = object_store.name
    ok = await db.ping_db()
    return PingResponse(status="ok" if ok else "degraded", storage=storage)


app.include_router(ingest_router)
app.include_router(query_router)
