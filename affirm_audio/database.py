from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from .config import settings
from .models import Base


def make_engine(url: str):
    is_sqlite = url.startswith("sqlite")
    engine = create_engine(
        url,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )

    # WAL lets the background TTS jobs write while status polls read
    if is_sqlite and ":memory:" not in url:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA busy_timeout=5000;")
            cursor.close()

    return engine


def make_session_factory(url: str) -> sessionmaker:
    """Build an engine for ``url``, create the tables and return a session factory."""
    bound = make_engine(url)
    Base.metadata.create_all(bind=bound)
    return sessionmaker(autocommit=False, autoflush=False, bind=bound)


engine = make_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def create_tables():
    """Create all database tables"""
    Base.metadata.create_all(bind=engine)
