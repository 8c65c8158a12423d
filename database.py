from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from functools import wraps
import logging

from config import get_settings
from core.exceptions import PartyGameException

logger = logging.getLogger(__name__)


settings = get_settings()

# SQLite needs check_same_thread=False: FastAPI serves sync routes from a thread pool
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency: one Session per request

    The session is closed after the response via yield.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Commit a manager operation as one database transaction

    Room, phase and submission operations take the Session as their first
    argument (or as `db=`) and never commit themselves. A successful return
    commits everything they flushed, including the game-state
    compare-and-swap and the point increments, so a half-applied
    transition is never visible to other players.

    Any exception rolls the whole operation back and propagates; routers
    turn PartyGameException subclasses into HTTP errors.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = args[0] if args and isinstance(args[0], Session) else kwargs.get("db")
        if db is None:
            raise ValueError(f"{func.__name__} is @transactional and needs a Session as its first argument")

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except PartyGameException as e:
            # Expected rejections, not failures
            logger.info(f"{func.__name__} rolled back: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"{func.__name__} failed, rolling back: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
