from __future__ import annotations
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Integer, Float, Text, Index
from .db import Base


def _new_id() -> str:
	return uuid.uuid4().hex


def _utcnow() -> datetime:
	# stored naive, always UTC
	return datetime.now(timezone.utc).replace(tzinfo=None)


class ExamAttemptRow(Base):
	__tablename__ = "exam_attempts"
	id = Column(String(64), primary_key=True, default=_new_id)
	# Remote identity is the (student_name, class) pair; no accounts
	student_name = Column(String(128), nullable=False)
	class_level = Column("class", String(16), nullable=False)
	subject = Column(String(256), nullable=False, default="General")
	chapters = Column(Text, nullable=False, default="[]")  # JSON array of strings
	marks_obtained = Column(Float, nullable=False, default=0)
	total_marks = Column(Float, nullable=False, default=0)
	percentage = Column(Float, nullable=True)
	time_taken_seconds = Column(Integer, nullable=False, default=0)
	time_taken = Column(String(32), nullable=True)
	raw_answer_text = Column(Text, nullable=False, default="")
	created_at = Column(DateTime, default=_utcnow, nullable=False)

	__table_args__ = (
		Index("ix_exam_attempts_identity", "student_name", "class"),
	)
