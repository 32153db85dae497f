import math
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from config import Settings, get_settings, settings
from database import MOVIES, THEATRE, TICKETS, USERS, Store, create_client, get_db, get_store
from errors import (
    AcknowledgmentFailure,
    NotFound,
    TransportFailure,
    Unauthorized,
    ValidationFailure,
    register_exception_handlers,
)
from logger_config import configure_logging
from mailer import Mailer, get_mailer
from schemas import Credentials, LoginResult, Message, PaymentNotice
from security import MAX_PASSWORD_BYTES, hash_password, issue_token, verify_password

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.uses_default_secret:
        logger.warning("SECRET_KEY is not set; login tokens are signed with the built-in placeholder key")
    client = await create_client(settings)
    app.state.db = client[settings.mongo_db]
    yield
    await client.close()
    logger.info("Mongodb connection closed")


app = FastAPI(title="Movie Ticketing API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


# Utility converters

INT64_MIN, INT64_MAX = -(2**63), 2**63


def to_number(value: str) -> Optional[float]:
    """Parse a query-string number; integral values in BSON int64 range come back as int."""
    if "_" in value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    if number.is_integer() and INT64_MIN <= number < INT64_MAX:
        return int(number)
    return number


def check_seat(seat: Dict[str, Any]) -> Dict[str, Any]:
    seat_id = seat.get("id")
    if isinstance(seat_id, bool) or not isinstance(seat_id, (int, float)):
        raise ValidationFailure("every seat needs a numeric id")
    if isinstance(seat_id, int) and not INT64_MIN <= seat_id < INT64_MAX:
        raise ValidationFailure("every seat needs a numeric id")
    return check_fields(seat)


def check_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    if any(str(key).startswith("$") for key in data):
        raise ValidationFailure("field names must not start with '$'")
    return data


def build_filter(request: Request) -> Optional[Dict[str, Any]]:
    """Exact-match filter from the query string, or None when nothing can match."""
    query = check_fields(dict(request.query_params))
    if "rating" in query:
        rating = to_number(query["rating"])
        if rating is None:
            return None
        query["rating"] = rating
    return query


def update_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in check_fields(data).items() if k != "_id"}
    if not fields:
        raise ValidationFailure("nothing to update")
    return fields


async def list_records(store: Store, collection: str, request: Request) -> List[Dict[str, Any]]:
    query = build_filter(request)
    if query is None:
        return []
    return await store.find(collection, query)


@app.get("/health")
async def health_check(db: AsyncDatabase = Depends(get_db)):
    try:
        await db.command("ping")
    except PyMongoError as e:
        logger.warning(f"Database ping failed: {e}")
        return JSONResponse(
            status_code=503, content={"status": "degraded", "database": "unavailable"}
        )
    return {"status": "ok", "database": "connected"}


# Movies
@app.get("/")
async def list_movies(request: Request, store: Store = Depends(get_store)):
    return await list_records(store, MOVIES, request)


@app.post("/add-movie", response_model=Message)
async def add_movie(data: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    if not await store.insert_one(MOVIES, check_fields(data)):
        raise AcknowledgmentFailure("movie not found")
    return {"msg": "movie added sucessfully!!"}


@app.put("/movies/{id}", response_model=Message)
async def update_movie(id: str, data: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    if not await store.update_one(MOVIES, {"id": id}, update_fields(data)):
        raise NotFound("movie not found")
    return {"msg": "movie updated sucessfully!!"}


@app.delete("/movies/{id}", response_model=Message)
async def delete_movie(id: str, store: Store = Depends(get_store)):
    if not await store.delete_one(MOVIES, {"id": id}):
        raise NotFound("movie not found")
    return {"msg": "movie deleted sucessfully!!"}


# Users
@app.post("/signup", response_model=Message)
async def signup(credentials: Credentials, store: Store = Depends(get_store)):
    username, password = credentials.username, credentials.password

    if await store.find_one(USERS, {"username": username}):
        raise ValidationFailure("user already exists!!")
    if len(password) < 8:
        raise ValidationFailure("password must be more than 8 characters!!")
    if len(username) < 5:
        raise ValidationFailure("username must be more than 4 characters long!!")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailure("password must be at most 72 bytes!!")

    hashed_password = await run_in_threadpool(hash_password, password)
    if not await store.insert_one(USERS, {"username": username, "password": hashed_password}):
        raise AcknowledgmentFailure("Account could not be created!!")
    return {"msg": "Account created successfully!!"}


@app.post("/login", response_model=LoginResult)
async def login(
    credentials: Credentials,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    user = await store.find_one(USERS, {"username": credentials.username})
    if user is None:
        raise NotFound("please sign up!!")

    is_password_match = await run_in_threadpool(
        verify_password, credentials.password, user.get("password")
    )
    if not is_password_match:
        raise Unauthorized("Incorrect credentials!!")

    token = issue_token(
        str(user["_id"]),
        settings.secret_key.get_secret_value(),
        algorithm=settings.token_algorithm,
        expires_minutes=settings.token_expire_minutes,
    )
    logger.info(f"User {credentials.username!r} logged in")
    return {"msg": "login successful!!", "token": token}


# Tickets
@app.get("/tickets")
async def list_tickets(request: Request, store: Store = Depends(get_store)):
    return await list_records(store, TICKETS, request)


@app.post("/add-ticket", response_model=Message)
async def add_ticket(data: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    if not await store.insert_one(TICKETS, check_fields(data)):
        raise AcknowledgmentFailure("Something went wrong !!")
    return {"msg": "ticket generated sucessfully!!"}


# Theatre
@app.get("/theatre")
async def list_seats(request: Request, store: Store = Depends(get_store)):
    return await list_records(store, THEATRE, request)


@app.post("/theatre", response_model=Message)
async def add_seats(seats: List[Dict[str, Any]] = Body(...), store: Store = Depends(get_store)):
    if not seats:
        raise ValidationFailure("at least one seat is required")
    if not await store.insert_many(THEATRE, [check_seat(seat) for seat in seats]):
        raise AcknowledgmentFailure("seats not added")
    return {"msg": "seats added sucessfully!!"}


@app.put("/theatre/{id}", response_model=Message)
async def update_seat(id: str, data: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    seat_id = to_number(id)
    fields = update_fields(data)
    if seat_id is None or not await store.update_one(THEATRE, {"id": seat_id}, fields):
        raise NotFound("seat not found")
    return {"msg": "seat updated sucessfully!!"}


# Payment
@app.post("/confirm-payment", response_model=Message)
async def confirm_payment(notice: PaymentNotice, mailer: Mailer = Depends(get_mailer)):
    if not await mailer.send(notice.mail, notice.msg):
        raise TransportFailure("payment failed!!")
    return {"msg": "payment successful!!"}


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
