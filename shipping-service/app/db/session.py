from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from app.core.config import settings


def engine_options(database_url: str) -> dict:
    """
    Builds create_engine keyword arguments for the given URL.

    PostgreSQL connections get a connect timeout and a server-side statement
    timeout so that no storage call inside a unit of work blocks forever.
    """
    options = {"pool_pre_ping": True}
    if make_url(database_url).get_backend_name() == "postgresql":
        options["connect_args"] = {
            "connect_timeout": settings.DB_CONNECT_TIMEOUT_SECONDS,
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        }
    return options


# The engine is the entry point to the database. It's configured with the
# database URL and handles the connection pooling.
engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

# SessionLocal is a factory for creating new Session objects.
# Each inbound message gets its own session, which is its unit of work.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        # Always close the session, even if the request failed.
        db.close()
