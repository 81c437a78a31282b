from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

# Base class for declarative ORM models.
Base = declarative_base()


def make_engine(database_url: str):
    """Create the SQLAlchemy engine for the given connection string.

    SQLite connections are shared with the stage worker threads, so the
    same-thread check is disabled and writers wait on a busy timeout instead
    of failing immediately.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_engine(database_url, pool_pre_ping=True)


def make_session_factory(engine):
    """Create a configured "Session" class bound to the engine.

    Objects stay readable after their session closes; the store hands them
    out detached.
    """
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine) -> None:
    """Create database tables defined in models.py if they don't exist."""
    from . import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(bind=engine)
