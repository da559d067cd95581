from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import JamAppException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./jam_sessions.db"

    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # Optimistic retries for a single jam read-modify-write
    jam_update_attempts: int = 3
    # Retries for writing past-jam history after a jam ends
    history_sync_attempts: int = 3

    allow_dual_membership: bool = True
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite needs check_same_thread=False because FastAPI serves requests
# from a thread pool
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency: provide a database session

    The session is closed once the request finishes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    if 'db' in kwargs and isinstance(kwargs['db'], Session):
        return kwargs['db']
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return None


def transactional(func):
    """
    Transaction decorator: run the wrapped call as one unit of work

    Usage:
        @transactional
        def some_business_logic(self, db: Session, ...):
            jam = Jam(...)
            db.add(jam)
            # no manual commit, the decorator handles it

    If the wrapped call raises:
        - the session is rolled back
        - the exception is re-raised for the caller

    Notes:
        - a Session must be passed positionally (after self for methods) or as db=
        - do not commit inside the wrapped call
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a 'db: Session' argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except (JamAppException, StaleDataError):
            # Rejected request or lost version race, nothing was applied
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
