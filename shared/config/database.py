import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import NullPool
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from shared.config import settings
from shared.errors import AlreadyExists, ConflictRetryExhausted, StoreUnavailable
from shared.observability.metrics import backoffice_transaction_retries_total

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DATABASE_URL = settings.DATABASE_URL

_engine_options = {"echo": settings.DB_ECHO}
if DATABASE_URL.startswith("sqlite"):
    # aiosqlite connections are bound to the loop that opened them
    _engine_options["poolclass"] = NullPool

engine = create_async_engine(DATABASE_URL, **_engine_options)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


def _log_conflict(operation: str):
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        backoffice_transaction_retries_total.labels(operation=operation).inc()
        logger.warning(
            "transaction_conflict",
            operation=operation,
            attempt=retry_state.attempt_number,
            error=type(exc).__name__,
        )

    return before_sleep


async def run_transaction(
    db: AsyncSession,
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    operation: str,
    retry_on: tuple[type[BaseException], ...] = (StaleDataError,),
    max_attempts: int | None = None,
) -> T:
    """
    Run ``work`` as one atomic unit: all of its reads and writes commit
    together or not at all.

    Versioned rows make a concurrent write surface as ``StaleDataError`` at
    flush time. On such a conflict the session is rolled back and ``work``
    is re-executed from its first read, up to ``max_attempts`` times, after
    which ``ConflictRetryExhausted`` is raised. Domain errors raised by
    ``work`` roll back and propagate unchanged.
    """
    attempts = max_attempts or settings.ORDER_TX_MAX_ATTEMPTS
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_random_exponential(multiplier=0.02, max=0.5),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_conflict(operation),
    )

    try:
        async for attempt in retrying:
            with attempt:
                try:
                    result = await work(db)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
    except RetryError as exc:
        logger.error("transaction_retries_exhausted", operation=operation, attempts=attempts)
        raise ConflictRetryExhausted(operation, attempts) from exc.last_attempt.exception()
    except IntegrityError as exc:
        raise AlreadyExists(f"Conflicting record during {operation}: {exc.orig}") from exc
    except DBAPIError as exc:
        logger.error("store_unavailable", operation=operation, error=str(exc.orig))
        raise StoreUnavailable(f"Database error during {operation}") from exc

    return result
