import logging
from collections import defaultdict

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from . import api_auth, api_customers, api_orders, api_settings
from .broadcaster import OrderBroadcaster
from .config import CORS_ORIGINS, LOG_LEVEL
from .database import init_db
from .errors import Conflict, DuplicateIdentifier, INVALID_DATA_MESSAGE, SERVER_ERROR_MESSAGE, ValidationFailed
from .status_history import to_iso, utcnow

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Initialize DB
init_db()

app = FastAPI(title="Order Tracker")

# One broadcaster per application; handlers get it through get_broadcaster.
app.state.broadcaster = OrderBroadcaster()

app.include_router(api_auth.router)
app.include_router(api_orders.router)
app.include_router(api_customers.router)
app.include_router(api_customers.portal_router)
app.include_router(api_settings.router)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error responses: always {"message": ..., "errors"?: {...}} ---

@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException):
    content = {"message": exc.detail}
    errors = getattr(exc, "errors", None)
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    errors = defaultdict(list)
    for error in exc.errors():
        # loc is ("body" | "query" | "path", field, ...)
        field = ".".join(str(part) for part in error["loc"][1:]) or "_"
        errors[field].append(error["msg"])
    return await http_error(request, ValidationFailed(INVALID_DATA_MESSAGE, dict(errors)))


@app.exception_handler(DuplicateIdentifier)
async def duplicate_identifier(request: Request, exc: DuplicateIdentifier):
    logger.warning("Identifier conflict on %s %s: %s", request.method, request.url.path, exc)
    return await http_error(request, Conflict())


@app.exception_handler(Exception)
async def server_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": SERVER_ERROR_MESSAGE})


@app.get("/api/health")
def health_check():
    return {"status": "ok", "timestamp": to_iso(utcnow())}


@app.websocket("/ws")
async def order_updates(websocket: WebSocket):
    broadcaster: OrderBroadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    await broadcaster.connect(websocket)
    try:
        # Clients only listen; text and binary frames alike are ignored.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(websocket)
