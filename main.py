import logging
import sys
import time

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
import settings
from admin import router as admin_router
from auth import router as auth_router
from blog import router as blog_router
from projects import router as projects_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("sustainability_hub")

app = FastAPI(title="Sustainability Hub API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

STARTED_AT = time.monotonic()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


# Error envelope: {"success": false, "message": ..., "errors"?: [...]}

def _validation_errors(errors) -> list:
    out = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        out.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return out


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({"success": False, "message": "Validation failed", "errors": _validation_errors(exc.errors())}),
    )


@app.exception_handler(ValidationError)
async def document_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({"success": False, "message": "Validation failed", "errors": _validation_errors(exc.errors())}),
    )


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_error(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"success": False, "message": "Resource already exists"})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


@app.on_event("startup")
def connect_database():
    if database.db is None:
        logger.error("Failed to start server: database unavailable (%s)", database.connection_error)
        sys.exit(1)
    database.ensure_indexes(database.db)
    logger.info("Database ready (%s)", "mongita" if database.USING_MONGITA else "mongodb")


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(blog_router)
app.include_router(projects_router)


@app.get("/")
def read_root():
    return {"message": "Sustainability Hub API running"}


@app.get("/api/health")
def health():
    return {
        "status": "OK",
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if settings.DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }

    db = database.db
    if db is None:
        if database.connection_error:
            response["database"] = f"❌ Error: {database.connection_error[:50]}"
        return response

    response["database"] = "✅ Available"
    response["connection_status"] = "Connected"
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
