from datetime import timedelta
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, status, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.middleware.trustedhost import TrustedHostMiddleware

import logging
from contextlib import asynccontextmanager

import AuthAndUser as auth
from config import get_settings
from domain.clock import MonotonicClock
from domain.errors import StorageError, ValidationError
from services.comment_store import build_store_factory

from routers import comments

logger = logging.getLogger('uvicorn.error')


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup: Initializing resources...")
    settings = get_settings()
    try:
        app.state.comment_store_factory = build_store_factory(settings)
    except Exception as e:
        logger.error(f"Failed to initialize comment store: {e}")
        app.state.comment_store_factory = None
    app.state.comment_clock = MonotonicClock()
    yield
    logger.info("Application shutdown: Cleaning up resources...")
    app.state.comment_store_factory = None


app = FastAPI(lifespan=lifespan)
app.include_router(comments.router)

app.add_middleware(
    TrustedHostMiddleware, allowed_hosts=get_settings().allowed_hosts
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "ValidationError", "message": exc.reason},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "StorageError", "message": str(exc)},
    )


@app.post("/token")
async def login_for_access_token(
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
) -> auth.Token:
    user = auth.authenticate_user(form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=get_settings().access_token_expire_minutes)
    access_token = auth.create_access_token(
        data={"sub": user.username}, expires_delta=access_token_expires
    )
    return auth.Token(access_token=access_token, token_type="bearer")
