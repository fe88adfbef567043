from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Store calls run in worker threads; writers wait on the file lock.
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


def init_db(engine: Engine) -> None:
    from app.store import models  # noqa: F401  registers tables on Base

    Base.metadata.create_all(engine)
