from __future__ import annotations
import json
import logging
from dataclasses import asdict
from datetime import timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..examiner.paper import round_half_up, score_percent
from ..models import ExamAttemptRow
from ..progress import summarize
from ..schemas import ExamAttempt, SaveAttemptRequest


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progress", tags=["progress"])


def _row_score(row: ExamAttemptRow) -> Optional[int]:
	if row.percentage is not None:
		try:
			return round_half_up(float(row.percentage))
		except (TypeError, ValueError):
			return None
	return score_percent(row.marks_obtained, row.total_marks)


def _chapters(raw: Optional[str]) -> List[str]:
	try:
		value = json.loads(raw or "[]")
	except ValueError:
		return []
	return [str(c) for c in value] if isinstance(value, list) else []


def row_to_attempt(row: ExamAttemptRow) -> ExamAttempt:
	return ExamAttempt(
		id=row.id,
		date=row.created_at,
		subject=row.subject or "General",
		chapters=_chapters(row.chapters),
		marks_obtained=max(0.0, row.marks_obtained or 0),
		total_marks=max(0.0, row.total_marks or 0),
		score_percent=_row_score(row),
		time_taken_seconds=max(0, row.time_taken_seconds or 0),
		time_taken=row.time_taken,
		raw_answer_text=row.raw_answer_text or "",
	)


def load_history(db: Session, name: str, cls: str) -> List[ExamAttempt]:
	rows = (
		db.query(ExamAttemptRow)
		.filter(ExamAttemptRow.student_name == name, ExamAttemptRow.class_level == cls)
		.order_by(ExamAttemptRow.created_at.asc())
		.all()
	)
	attempts = [row_to_attempt(r) for r in rows]
	return [a for a in attempts if a.score_percent is not None]


@router.get("")
def list_attempts(
	name: str = Query(default=""),
	cls: str = Query(default="", alias="class"),
	db: Session = Depends(get_db),
):
	name, cls = name.strip(), cls.strip()
	if not name or not cls:
		return {"attempts": []}
	try:
		attempts = load_history(db, name, cls)
	except SQLAlchemyError as e:
		logger.exception("Progress lookup failed for %s/%s", name, cls)
		raise HTTPException(status_code=500, detail="Progress store unavailable") from e
	return {"attempts": [a.model_dump(mode="json", by_alias=True) for a in attempts]}


@router.post("/attempts", status_code=201)
def save_attempt(req: SaveAttemptRequest, db: Session = Depends(get_db)):
	identity = req.student.identity
	if identity is None:
		raise HTTPException(status_code=400, detail="student name and class are required")
	a = req.attempt
	row = ExamAttemptRow(
		id=a.id,
		student_name=identity[0],
		class_level=identity[1],
		subject=a.subject,
		chapters=json.dumps(a.chapters),
		marks_obtained=a.marks_obtained,
		total_marks=a.total_marks,
		percentage=a.score_percent,
		time_taken_seconds=a.time_taken_seconds,
		time_taken=a.time_taken,
		raw_answer_text=a.raw_answer_text,
		created_at=a.date.astimezone(timezone.utc).replace(tzinfo=None),
	)
	if db.get(ExamAttemptRow, a.id) is not None:
		raise HTTPException(status_code=409, detail="attempt already stored")
	try:
		db.add(row)
		db.commit()
	except SQLAlchemyError as e:
		db.rollback()
		logger.exception("Could not store attempt %s", a.id)
		raise HTTPException(status_code=500, detail="Progress store unavailable") from e
	return {"ok": True, "id": a.id}


@router.get("/summary")
def progress_summary(
	name: str = Query(default=""),
	cls: str = Query(default="", alias="class"),
	db: Session = Depends(get_db),
):
	name, cls = name.strip(), cls.strip()
	attempts = load_history(db, name, cls) if name and cls else []
	return asdict(summarize(attempts))
