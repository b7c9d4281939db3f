from contextlib import ExitStack, contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.config import settings

# Base para modelos (lo importa retail_pos.main)
Base = declarative_base()


def make_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 60)
        eng = create_engine(url, connect_args=connect_args, **kwargs)
        event.listen(eng, "connect", _sqlite_pragmas)
        return eng
    return create_engine(url, pool_pre_ping=True, **kwargs)


# PRAGMAs por conexión
def _sqlite_pragmas(dbapi_conn, _):
    cur = dbapi_conn.cursor()
    try:
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA busy_timeout=60000;")
        cur.execute("PRAGMA foreign_keys=ON;")
        cur.execute("PRAGMA synchronous=NORMAL;")
    finally:
        cur.close()


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# Dependencia FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session, *guards):
    """Commit on success, roll back on any error.

    ``guards`` are context managers (usually keyed locks) held for the whole
    unit of work, commit included.
    """
    with ExitStack() as stack:
        for g in guards:
            stack.enter_context(g)
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
