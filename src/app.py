"""Portfolio Contact Service - FastAPI server for the portfolio contact form."""

import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.contact.config import get_settings
from src.shared.contact.routes import router as contact_router

settings = get_settings()
ALLOWED_ORIGINS = settings.cors_origins

app = FastAPI(
    title="Portfolio Contact Service",
    description="Contact form intake for the portfolio website",
    version="0.1.0"
)

# Include contact routes
app.include_router(contact_router)

# CORS configuration - must be added before exception handlers
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses to allowed origins."""
    headers = {}
    origin = request.headers.get("origin")
    if origin in ALLOWED_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Access-Control-Allow-Methods"] = "*"
        headers["Access-Control-Allow-Headers"] = "*"
    return headers


def _error_content(detail) -> dict:
    # Handle both string and dict detail formats
    if isinstance(detail, dict):
        return detail
    if isinstance(detail, str):
        return {"detail": detail}
    return {"detail": str(detail)}


# Global exception handlers to ensure CORS headers are always added
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure CORS headers are added to FastAPI HTTP exceptions."""
    headers = dict(exc.headers or {})
    headers.update(_cors_headers(request))
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(exc.detail),
        headers=headers
    )


@app.exception_handler(StarletteHTTPException)
async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Ensure CORS headers are added to Starlette HTTP exceptions."""
    headers = dict(exc.headers or {})
    headers.update(_cors_headers(request))
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(exc.detail),
        headers=headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Ensure CORS headers are added to all exceptions."""
    logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=_cors_headers(request)
    )


@app.get("/")
async def root():
    return {"message": "Portfolio contact service is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
