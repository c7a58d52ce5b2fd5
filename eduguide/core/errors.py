import logging
from fastapi import FastAPI, HTTPException, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An internal server error occurred."

class ApiError(HTTPException):
    """HTTPException whose body carries extra fields next to `error`."""

    def __init__(self, status_code: int, error: str, **extra):
        super().__init__(status_code=status_code, detail=error)
        self.extra = extra

def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query")]
    return ".".join(parts) or "body"

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = {"error": exc.detail if isinstance(exc.detail, str) else str(exc.detail)}
    content.update(getattr(exc, "extra", None) or {})
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = [{"field": _field_name(err.get("loc", ())), "message": err.get("msg", "invalid")} for err in exc.errors()]
    first = fields[0] if fields else {"field": "body", "message": "invalid"}
    return JSONResponse(
        status_code=400,
        content={"error": f"{first['field']}: {first['message']}", "fields": fields},
    )

async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
