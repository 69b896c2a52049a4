from sqlmodel import SQLModel, Session, create_engine

from app.settings import settings

# SQLite connections are shared with FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, connect_args=connect_args)


def create_db_and_tables():
    # Import models so they register with SQLModel.metadata
    from app import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_db():
    with Session(engine) as session:
        yield session
