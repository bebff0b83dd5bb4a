# pr_reviewers/main.py

import logging
import os

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pr_reviewers.api.pull_request import router as pull_request_router
from pr_reviewers.api.stats import router as stats_router
from pr_reviewers.api.team import router as team_router
from pr_reviewers.api.user import router as user_router
from pr_reviewers.core.exceptions import BaseAppException, BulkRebalanceError
from pr_reviewers.core.settings import settings
from pr_reviewers.database import init_db
from pr_reviewers.schemas.response import ErrorDetail, ErrorResponse, HealthResponse

# Логирование
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn.error")

app = FastAPI(
    title="PR Reviewer Assignment API",
    version="1.0.0",
    description="Assigns and rebalances pull request reviewers inside teams",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(team_router)
app.include_router(user_router)
app.include_router(pull_request_router)
app.include_router(stats_router)

@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health():
    return HealthResponse(ok=True)

@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info(f"Starting PR Reviewer Assignment API (env={settings.ENV})")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Stopping PR Reviewer Assignment API")

def _error(status_code: int, code: str, message: str, details=None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)

@app.exception_handler(BaseAppException)
async def app_exception_handler(request: Request, exc: BaseAppException):
    details = None
    if isinstance(exc, BulkRebalanceError):
        details = [
            {"pull_request_id": pr_id, "code": getattr(err, "code", "INTERNAL"), "message": str(err)}
            for pr_id, err in exc.failures
        ]
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    return _error(exc.status_code, exc.code, exc.message, details)

_HTTP_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
}

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return _error(exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    message = "; ".join(
        f"{'.'.join(str(p) for p in e['loc'][1:]) or 'body'}: {e['msg']}" for e in exc.errors()
    )
    return _error(status.HTTP_400_BAD_REQUEST, "BAD_REQUEST", message or "invalid request")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pr_reviewers.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8080)),
        reload=settings.DEBUG,
    )
