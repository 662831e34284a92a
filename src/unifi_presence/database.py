"""Database setup and session management."""

from collections.abc import Generator

from sqlmodel import Session, SQLModel, create_engine

from unifi_presence.config import settings

engine = create_engine(
    f"sqlite:///{settings.db_path}",
    echo=False,
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    """Create the database directory and all tables."""
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for FastAPI Depends()."""
    with Session(engine) as session:
        yield session
