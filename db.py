from pathlib import Path
import os
import sys
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

def app_root_dir() -> Path:
    if getattr(sys, "frozen", False):
        exe_dir = Path(sys.executable).resolve().parent
        return exe_dir.parent
    return Path(__file__).resolve().parent

def resolve_db_path(root_dir: Path) -> Path:
    custom_path = os.getenv("APP_DB_PATH")
    if not custom_path:
        data_dir = root_dir / "data"
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / "equip.db"

    db_path = Path(custom_path).expanduser()
    if not db_path.is_absolute():
        db_path = (root_dir / db_path).resolve()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path

def resolve_database_url(root_dir: Path) -> str:
    url = os.getenv("APP_DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{resolve_db_path(root_dir).as_posix()}"

ROOT_DIR = app_root_dir()
DATABASE_URL = resolve_database_url(ROOT_DIR)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
)

if DATABASE_URL.startswith("sqlite"):
    # pysqlite defers BEGIN until the first write; take the write lock at the first read instead
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

class Base(DeclarativeBase):
    pass
