"""Text helpers for question papers and board-style evaluations.

Used on both sides of ``/chat``: the route builds the paper/evaluation
replies, the session splits them back apart.
"""
from __future__ import annotations
import json
import math
import re
from typing import Any, Dict, List, Optional, Tuple


# Boundary between a paper (or evaluation) body and the trailing commentary
PAPER_DELIMITER = "-" * 39

# Prefix that tags a message as a downloadable paper rather than dialogue
PAPER_MARKER = "[[PAPER]]\n"

_STRUCTURE_MARKERS = (
	re.compile(r"\bsection\s+[a-e]\b", re.IGNORECASE),
	re.compile(r"\bmaximum\s+marks\b", re.IGNORECASE),
	re.compile(r"\btime\s+allowed\b", re.IGNORECASE),
	re.compile(r"\bgeneral\s+instructions\b", re.IGNORECASE),
)

SUBJECT_KEYWORDS = (
	"history",
	"science",
	"math",
	"geography",
	"civics",
	"economics",
	"english",
	"hindi",
	"physics",
	"chemistry",
	"biology",
)
_REQUEST_KEYWORDS = SUBJECT_KEYWORDS + ("chapter", "test", "exam")
_CHAPTER_RE = re.compile(r"chapter\s*\d+", re.IGNORECASE)
_SUBJECT_LINE_RE = re.compile(r"^\s*\**\s*subject\s*[:\-]\s*\**\s*(.+?)\s*\**\s*$", re.IGNORECASE | re.MULTILINE)


def split_paper(text: Optional[str]) -> Tuple[str, str]:
	"""Return ``(body, commentary)``; without a delimiter everything is body."""
	text = text or ""
	body, sep, rest = text.partition(PAPER_DELIMITER)
	if not sep:
		return text.strip(), ""
	return body.strip(), rest.strip()


def looks_like_paper(text: Optional[str]) -> bool:
	if not text:
		return False
	if text.startswith(PAPER_MARKER):
		return True
	hits = sum(1 for marker in _STRUCTURE_MARKERS if marker.search(text))
	return hits >= 2


def looks_like_subject_request(text: str) -> bool:
	lower = text.lower()
	return any(k in lower for k in _REQUEST_KEYWORDS)


def extract_chapters(request: str) -> List[str]:
	seen: List[str] = []
	for match in _CHAPTER_RE.findall(request or ""):
		label = " ".join(match.split()).title()
		# "chapter3" and "Chapter 3" are the same chapter
		label = re.sub(r"Chapter(\d)", r"Chapter \1", label)
		if label not in seen:
			seen.append(label)
	return seen


def detect_subject(request: str) -> str:
	lower = (request or "").lower()
	for keyword in SUBJECT_KEYWORDS:
		if keyword in lower:
			return "Mathematics" if keyword == "math" else keyword.title()
	return "General"


def extract_subject(reply: Optional[str]) -> Optional[str]:
	"""Read a ``Subject: ...`` header out of a generated paper, if it has one."""
	if not reply:
		return None
	match = _SUBJECT_LINE_RE.search(reply)
	if match:
		return match.group(1).strip() or None
	return None


def duration_minutes(request: str) -> int:
	count = len(_CHAPTER_RE.findall(request or "")) or 1
	if count >= 4:
		return 150
	if count == 3:
		return 120
	if count == 2:
		return 90
	return 60


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def score_percent(marks_obtained: Optional[float], total_marks: Optional[float], percentage: Optional[float] = None) -> Optional[int]:
	"""Local ratio wins; the server's percentage only fills in when total is missing or zero."""
	if total_marks and total_marks > 0:
		return round_half_up((marks_obtained or 0) * 100 / total_marks)
	if percentage is not None:
		return round_half_up(percentage)
	return None


def format_duration(seconds: int) -> str:
	seconds = max(0, int(seconds))
	return f"{seconds // 60}m {seconds % 60}s"


def parse_evaluation(text: str) -> Optional[Dict[str, Any]]:
	cleaned = re.sub(r"```(?:json)?", "", text or "", flags=re.IGNORECASE).strip()
	match = re.search(r"\{[\s\S]*\}", cleaned)
	if not match:
		return None
	try:
		data = json.loads(match.group(0))
	except ValueError:
		return None
	if not isinstance(data, dict):
		return None
	for key in ("marksObtained", "totalMarks", "percentage"):
		value = data.get(key)
		if isinstance(value, bool) or not isinstance(value, (int, float)):
			return None
	if not isinstance(data.get("detailedEvaluation"), str):
		return None
	return data


def format_evaluation(evaluation: str, marks: float, total: float, percentage: float, time_taken_seconds: int) -> str:
	return (
		f"{evaluation.strip()}\n\n"
		f"{PAPER_DELIMITER}\n\n"
		f"Total Marks: {marks:g}/{total:g}\n"
		f"Percentage: {percentage:.2f}%\n"
		f"Time Taken: {format_duration(time_taken_seconds)}"
	)


def paper_reply(paper: str, duration: int) -> str:
	"""Paper body followed by the exam-hall instructions after the delimiter."""
	return (
		f"{paper.strip()}\n\n"
		f"{PAPER_DELIMITER}\n\n"
		f"Your exam has started. You have {duration} minutes.\n"
		"Send your answers as messages, then type SUBMIT when you are done."
	)
