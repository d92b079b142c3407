import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from backend import category_service, config, transaction_service, user_service
from backend.database import get_engine, init_db
from backend.errors import AppError, InternalError, ValidationError
from backend.pagination import Page
from backend.security import Identity, authenticate, create_access_token

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Finance Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup() -> None:
    # Refuse to serve with the built-in signing key outside development.
    config.get_jwt_secret()
    engine_factory = app.dependency_overrides.get(get_engine, get_engine)
    init_db(engine_factory())


def error_body(exc: AppError) -> dict:
    body = {"success": False, "message": exc.message, "code": exc.code}
    if isinstance(exc, InternalError) and exc.detail and config.is_development():
        body["error"] = exc.detail
    return body


@app.exception_handler(AppError)
async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
    validation_error = ValidationError(message)
    return JSONResponse(
        status_code=validation_error.status_code, content=error_body(validation_error)
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    internal = InternalError(detail=str(exc))
    return JSONResponse(status_code=internal.status_code, content=error_body(internal))


@contextmanager
def unit_of_work(engine: Engine) -> Iterator[Connection]:
    """One database transaction per request; store failures become InternalError."""
    try:
        with engine.begin() as conn:
            yield conn
    except AppError:
        raise
    except SQLAlchemyError as exc:
        logger.exception("Database operation failed")
        raise InternalError(detail=str(exc)) from exc


def get_identity(
    authorization: str | None = Header(None),
    engine: Engine = Depends(get_engine),
) -> Identity:
    with unit_of_work(engine) as conn:
        return authenticate(conn, authorization)


class RegisterPayload(BaseModel):
    name: Any = None
    email: Any = None
    password: Any = None


class LoginPayload(BaseModel):
    email: Any = None
    password: Any = None


class ProfilePayload(BaseModel):
    name: Any = None
    avatar: Any = None
    currency: Any = None


class CategoryPayload(BaseModel):
    name: Any = None
    type: Any = Field(None, validation_alias=AliasChoices("type", "direction"))
    color: Any = None
    icon: Any = None


class TransactionPayload(BaseModel):
    amount: Any = None
    type: Any = Field(None, validation_alias=AliasChoices("type", "direction"))
    category: Any = None
    date: Any = None
    description: Any = None


def supplied_fields(payload: BaseModel) -> dict:
    return payload.model_dump(include=payload.model_fields_set)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/register", status_code=201)
def register(payload: RegisterPayload, engine: Engine = Depends(get_engine)) -> dict:
    with unit_of_work(engine) as conn:
        user = user_service.register_user(
            conn, payload.name, payload.email, payload.password
        )
    return {
        "success": True,
        "message": "User registered successfully",
        "data": user,
        "token": create_access_token(user),
    }


@app.post("/login")
def login(payload: LoginPayload, engine: Engine = Depends(get_engine)) -> dict:
    with unit_of_work(engine) as conn:
        user = user_service.login_user(conn, payload.email, payload.password)
    return {
        "success": True,
        "message": "Login successful",
        "data": user,
        "token": create_access_token(user),
    }


@app.post("/logout")
def logout(identity: Identity = Depends(get_identity)) -> dict:
    return {
        "success": True,
        "message": "Logged out successfully (remove token on client)",
    }


@app.get("/me")
def get_me(
    identity: Identity = Depends(get_identity), engine: Engine = Depends(get_engine)
) -> dict:
    with unit_of_work(engine) as conn:
        user = user_service.get_profile(conn, identity)
    return {"success": True, "data": user}


@app.put("/me")
def update_me(
    payload: ProfilePayload,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        user = user_service.update_profile(conn, identity, supplied_fields(payload))
    return {"success": True, "message": "Profile updated successfully", "data": user}


@app.get("/users")
def list_users(
    search: str | None = None,
    role: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        result = user_service.list_users(
            conn, identity, search=search, role=role, page=Page.from_query(page, limit)
        )
    return result.to_dict()


@app.post("/categories", status_code=201)
def create_category(
    payload: CategoryPayload,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        category = category_service.create_category(
            conn,
            identity,
            payload.name,
            payload.type,
            color=payload.color,
            icon=payload.icon,
        )
    return {"success": True, "message": "Category created successfully", "data": category}


@app.get("/categories")
def list_categories(
    search: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        result = category_service.list_categories(
            conn, identity, search=search, page=Page.from_query(page, limit)
        )
    return result.to_dict()


@app.get("/categories/{category_id}")
def get_category(
    category_id: int,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        category = category_service.get_category(conn, identity, category_id)
    return {"success": True, "data": category}


@app.put("/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryPayload,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        category = category_service.update_category(
            conn, identity, category_id, supplied_fields(payload)
        )
    return {"success": True, "message": "Category updated successfully", "data": category}


@app.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        category_service.delete_category(conn, identity, category_id)
    return {"success": True, "message": "Category deleted successfully"}


@app.post("/transactions", status_code=201)
def create_transaction(
    payload: TransactionPayload,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        transaction = transaction_service.create_transaction(
            conn,
            identity,
            payload.amount,
            payload.type,
            payload.category,
            date=payload.date,
            description=payload.description,
        )
    return {
        "success": True,
        "message": "Transaction added successfully",
        "data": transaction,
    }


@app.get("/transactions")
def list_transactions(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    category: str | None = None,
    type: str | None = None,
    direction: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        result = transaction_service.list_transactions(
            conn,
            identity,
            start_date=start_date,
            end_date=end_date,
            category=category,
            transaction_type=type or direction,
            page=Page.from_query(page, limit),
        )
    return result.to_dict()


@app.get("/transactions/summary")
def get_summary(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    category: str | None = None,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        summary = transaction_service.summarize_transactions(
            conn,
            identity,
            start_date=start_date,
            end_date=end_date,
            category=category,
        )
    return {"success": True, "data": summary.to_dict()}


@app.put("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionPayload,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        transaction = transaction_service.update_transaction(
            conn, identity, transaction_id, supplied_fields(payload)
        )
    return {
        "success": True,
        "message": "Transaction updated successfully",
        "data": transaction,
    }


@app.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    identity: Identity = Depends(get_identity),
    engine: Engine = Depends(get_engine),
) -> dict:
    with unit_of_work(engine) as conn:
        deleted = transaction_service.delete_transaction(conn, identity, transaction_id)
    return {
        "success": True,
        "message": "Transaction deleted successfully",
        "data": deleted,
    }
