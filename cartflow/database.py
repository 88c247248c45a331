# cartflow/database.py
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from cartflow.core.config import get_settings

settings = get_settings()


def _engine_options(db_url: str) -> tuple[str, dict]:
    """
    Connection options per backend.

    Postgres (production):
      - sslmode=require   : enforce SSL when running in the cloud
      - pool_pre_ping=True: validate connections before using them

    SQLite (local runs, tests):
      - check_same_thread=False so the FastAPI threadpool can share it
      - an in-memory database must live on a single shared connection
    """
    if db_url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return db_url, options

    if "sslmode=" not in db_url:
        db_url += "&sslmode=require" if "?" in db_url else "?sslmode=require"
    return db_url, {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5}


db_url, engine_options = _engine_options(settings.DATABASE_URL)

engine = create_engine(
    db_url,
    echo=False,        # set to True if you want to debug SQL queries
    **engine_options,
)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
