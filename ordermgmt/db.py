import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError

from .config import get_settings
from .errors import ConcurrencyConflict, PersistenceFailure

logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().database_url

# For SQLite, enable check_same_thread=False for multithreading in FastAPI
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args, future=True)


def enable_sqlite_foreign_keys(target_engine):
    @event.listens_for(target_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Ensure SQLite enforces foreign keys (order_items.product_id is RESTRICT)
if DATABASE_URL.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


@contextmanager
def unit_of_work(db: Session):
    """Run the enclosed block as one all-or-nothing transaction.

    Commits when the block exits cleanly. On any exception the session is
    rolled back; storage errors are translated into the domain taxonomy and
    domain errors propagate unchanged.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrencyConflict("the record was modified by another request; reload and retry") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("persistence failure, transaction rolled back", exc_info=True)
        raise PersistenceFailure(str(e.__class__.__name__)) from e
    except Exception:
        db.rollback()
        raise
