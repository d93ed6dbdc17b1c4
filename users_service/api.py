"""FastAPI application that exposes CRUD endpoints for users."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .database import Database, DuplicateEmailError, StoreError, resolve_database_path
from .models import User, UserPage
from .query import INT64_MAX, ListQuery

logger = logging.getLogger("users_service.api")


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class UserListResponse(BaseModel):
    items: List[UserResponse]
    limit: int
    offset: int
    sort: str
    order: str
    query: str


class UserWriteRequest(BaseModel):
    """Body accepted by both ``POST /users`` and ``PUT /users/{id}``."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=320)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be empty")
        return stripped

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        local, _, domain = normalized.partition("@")
        if not local or not domain:
            raise ValueError("email must be a valid address")
        return normalized


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def page_to_response(page: UserPage) -> UserListResponse:
    return UserListResponse(
        items=[user_to_response(user) for user in page.items],
        limit=page.limit,
        offset=page.offset,
        sort=page.sort,
        order=page.order,
        query=page.query,
    )


def _trusted_proxy_hosts() -> list[str] | str:
    raw = os.getenv("USERS_TRUSTED_PROXIES")
    if not raw:
        return "*"
    hosts = [item.strip() for item in raw.split(",") if item.strip()]
    return hosts or "*"


def create_app(
    *,
    database: Database | None = None,
    initialize_database: bool = False,
    trusted_proxies: Sequence[str] | None = None,
) -> FastAPI:
    if database is None:
        db_path = resolve_database_path(os.getenv("USERS_DB_PATH"))
        database = Database(db_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    app = FastAPI(
        title="Users Service",
        description="CRUD API for user records with filtered, sorted and paginated listing",
        version="1.0.0",
    )
    proxies = list(trusted_proxies) if trusted_proxies else _trusted_proxy_hosts()
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=proxies)
    app.state.database = database

    def get_db() -> Database:
        return database

    def _user_not_found() -> HTTPException:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    router = APIRouter(prefix="/users", tags=["users"])

    @router.get("", response_model=UserListResponse)
    def list_users(
        q: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        limit: Optional[str] = None,
        offset: Optional[str] = None,
        db: Database = Depends(get_db),
    ) -> UserListResponse:
        query = ListQuery.from_params(q=q, sort=sort, order=order, limit=limit, offset=offset)
        return page_to_response(db.list_users(query))

    @router.get("/{user_id}", response_model=UserResponse)
    def read_user(
        user_id: int = Path(..., ge=1, le=INT64_MAX),
        db: Database = Depends(get_db),
    ) -> UserResponse:
        user = db.get_user(user_id)
        if user is None:
            raise _user_not_found()
        return user_to_response(user)

    @router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    def create_user(payload: UserWriteRequest, db: Database = Depends(get_db)) -> UserResponse:
        try:
            user = db.create_user(payload.name, payload.email)
        except DuplicateEmailError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        logger.info("Created user %s", user.id)
        return user_to_response(user)

    @router.put("/{user_id}", response_model=UserResponse)
    def update_user(
        payload: UserWriteRequest,
        user_id: int = Path(..., ge=1, le=INT64_MAX),
        db: Database = Depends(get_db),
    ) -> UserResponse:
        try:
            user = db.update_user(user_id, name=payload.name, email=payload.email)
        except DuplicateEmailError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        if user is None:
            raise _user_not_found()
        logger.info("Updated user %s", user.id)
        return user_to_response(user)

    @router.delete("/{user_id}", response_model=UserResponse)
    def delete_user(
        user_id: int = Path(..., ge=1, le=INT64_MAX),
        db: Database = Depends(get_db),
    ) -> UserResponse:
        user = db.delete_user(user_id)
        if user is None:
            raise _user_not_found()
        logger.info("Deleted user %s", user.id)
        return user_to_response(user)

    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        logger.error("Store failure during %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc)},
        )

    return app


__all__ = ["UserListResponse", "UserResponse", "UserWriteRequest", "create_app"]
