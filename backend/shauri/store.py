"""Exam attempt history.

The in-memory list is the source of truth for the running process. Every
append is mirrored to a device-local JSON file and, when the student's
``(name, class)`` identity is known, to the backend ``/progress`` API.
Mirroring failures are logged and never raised.
"""
from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import httpx
from pydantic import TypeAdapter, ValidationError

from .schemas import ExamAttempt, SaveAttemptRequest, StudentContext
from .settings import settings


logger = logging.getLogger(__name__)

EXPORT_FORMAT = "shauri.attempts"
EXPORT_VERSION = 1

_attempt_list = TypeAdapter(List[ExamAttempt])


class AttemptImportError(ValueError):
	pass


def _by_date(attempts: Sequence[ExamAttempt]) -> List[ExamAttempt]:
	# sorted() is stable, so same-second attempts keep insertion order
	return sorted(attempts, key=lambda a: a.date)


def dump_attempts(attempts: Sequence[ExamAttempt]) -> str:
	return json.dumps({
		"format": EXPORT_FORMAT,
		"version": EXPORT_VERSION,
		"attempts": _attempt_list.dump_python(list(attempts), mode="json", by_alias=True),
	}, indent=2)


def load_attempts(blob: Union[str, bytes]) -> List[ExamAttempt]:
	"""Parse an export document (or a bare list of records); raise ``AttemptImportError`` on anything else."""
	try:
		doc: Any = json.loads(blob)
	except ValueError as err:
		raise AttemptImportError(f"Not a JSON document: {err}") from err
	if isinstance(doc, dict):
		if doc.get("format") not in (None, EXPORT_FORMAT):
			raise AttemptImportError(f"Unknown document format {doc.get('format')!r}")
		records = doc.get("attempts")
	else:
		records = doc
	if not isinstance(records, list):
		raise AttemptImportError("Expected a list of attempt records")
	try:
		return _attempt_list.validate_python(records)
	except ValidationError as err:
		raise AttemptImportError(f"Invalid attempt record: {err.errors()[0]['msg']}") from err


class RemoteAttempts:
	"""The backend ``/progress`` API, keyed by ``(student_name, class)``."""

	def __init__(self, base_url: Optional[str] = None, *, client: Optional[httpx.AsyncClient] = None) -> None:
		self._owns_client = client is None
		self._client = client or httpx.AsyncClient(
			base_url=(base_url or settings.api_url).rstrip("/"),
			timeout=settings.transport_timeout_seconds,
		)

	async def save(self, attempt: ExamAttempt, student: StudentContext) -> None:
		body = SaveAttemptRequest(student=student, attempt=attempt)
		r = await self._client.post("/progress/attempts", json=body.model_dump(mode="json", by_alias=True))
		r.raise_for_status()

	async def fetch(self, student: StudentContext) -> List[ExamAttempt]:
		name, cls = student.identity or ("", "")
		r = await self._client.get("/progress", params={"name": name, "class": cls})
		r.raise_for_status()
		body = r.json()
		if not isinstance(body, dict):
			raise ValueError(f"Unexpected /progress body: {type(body).__name__}")
		return _attempt_list.validate_python(body.get("attempts", []))

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()


class AttemptStore:
	def __init__(self, path: Union[str, Path, None] = None, *, remote: Optional[RemoteAttempts] = None) -> None:
		self.path = Path(path) if path is not None else None
		self.remote = remote
		self._attempts: List[ExamAttempt] = self._read_local()

	@property
	def attempts(self) -> tuple:
		return tuple(self._attempts)

	def _read_local(self) -> List[ExamAttempt]:
		if self.path is None or not self.path.exists():
			return []
		try:
			return load_attempts(self.path.read_text(encoding="utf-8"))
		except (OSError, AttemptImportError):
			logger.warning("Ignoring unreadable local attempt file %s", self.path, exc_info=True)
			return []

	def _write_local(self) -> None:
		if self.path is None:
			return
		tmp = self.path.with_suffix(self.path.suffix + ".tmp")
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			tmp.write_text(dump_attempts(self._attempts), encoding="utf-8")
			os.replace(tmp, self.path)
		except OSError:
			logger.warning("Could not write local attempt file %s", self.path, exc_info=True)

	async def append(self, attempt: ExamAttempt, student: Optional[StudentContext] = None) -> None:
		self._attempts.append(attempt)
		self._write_local()
		if self.remote is None or student is None or student.identity is None:
			return
		try:
			await self.remote.save(attempt, student)
		except (httpx.HTTPError, ValidationError):
			logger.warning("Remote save of attempt %s failed; kept locally", attempt.id, exc_info=True)

	async def list(self, student: Optional[StudentContext] = None) -> List[ExamAttempt]:
		if self.remote is not None and student is not None and student.identity is not None:
			try:
				return _by_date(await self.remote.fetch(student))
			except (httpx.HTTPError, ValueError):
				logger.warning("Remote attempt history unavailable; using local copy", exc_info=True)
		return _by_date(self._attempts)

	def export(self) -> str:
		return dump_attempts(self._attempts)

	def import_(self, blob: Union[str, bytes]) -> int:
		attempts = load_attempts(blob)
		self._attempts = attempts
		self._write_local()
		logger.info("Imported %d attempt(s)", len(attempts))
		return len(attempts)
