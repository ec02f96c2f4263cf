from __future__ import annotations
import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url or "sqlite:///./shauri.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Columns added after the first release of exam_attempts; SQLite-friendly
_LATE_COLUMNS = {
	"chapters": "ALTER TABLE exam_attempts ADD COLUMN chapters TEXT DEFAULT '[]' NOT NULL",
	"raw_answer_text": "ALTER TABLE exam_attempts ADD COLUMN raw_answer_text TEXT DEFAULT '' NOT NULL",
	"time_taken": "ALTER TABLE exam_attempts ADD COLUMN time_taken VARCHAR(32)",
}


def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		logger.warning("Could not inspect database schema", exc_info=True)
		return
	if "exam_attempts" not in tables:
		return
	cols = {c["name"] for c in inspector.get_columns("exam_attempts")}
	missing = [ddl for name, ddl in _LATE_COLUMNS.items() if name not in cols]
	if not missing:
		return
	with bind.begin() as conn:
		for ddl in missing:
			conn.exec_driver_sql(ddl)
	logger.info("Added %d late column(s) to exam_attempts", len(missing))
