from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine, inspect
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from . import config

Base = declarative_base()

# Alembic script directory, used when running migrations programmatically
BACKEND_DIR = Path(__file__).parent.parent          # …/backend/
ALEMBIC_DIR = BACKEND_DIR / "alembic"

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _connect_args(db_url: str) -> dict:
    return {"check_same_thread": False} if db_url.startswith("sqlite") else {}


def get_engine() -> Engine:
    global _engine, _SessionLocal
    if _engine is None:
        if config.DATABASE_URL.startswith("sqlite:///"):
            config.DATA_DIR.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(config.DATABASE_URL, connect_args=_connect_args(config.DATABASE_URL))
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


def _run_alembic_upgrade(db_url: str, *, is_new_db: bool) -> None:
    """Run Alembic migrations to head for the given DB URL.

    - Brand-new DBs: ``create_all`` already built the current schema, so the
      head revision is stamped and nothing is replayed.
    - Existing DBs: ``upgrade head`` applies whatever is pending.
    """
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    alembic_cfg.set_main_option("sqlalchemy.url", db_url)

    if is_new_db:
        command.stamp(alembic_cfg, "head")
        return
    command.upgrade(alembic_cfg, "head")


def init_db() -> None:
    """Create tables, run Alembic migrations, and seed the challenge catalog.

    Demo transactions are added too when ``SAVEQUEST_SEED_DEMO_USER`` is set.
    """
    from . import models  # noqa: F401  (registers tables on Base.metadata)
    from .services.seeder import seed_challenges, seed_demo_transactions

    engine = get_engine()
    is_new_db = "alembic_version" not in inspect(engine).get_table_names()
    if is_new_db:
        Base.metadata.create_all(bind=engine)
    _run_alembic_upgrade(config.DATABASE_URL, is_new_db=is_new_db)

    db = _SessionLocal()
    try:
        seed_challenges(db)
        if config.SEED_DEMO_USER:
            seed_demo_transactions(db, config.SEED_DEMO_USER)
    finally:
        db.close()


def dispose_engine() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_db() -> Generator[Session, None, None]:
    get_engine()
    db = _SessionLocal()
    try:
        yield db
    finally:
        db.close()
