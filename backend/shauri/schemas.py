"""Wire and record models shared by the API routes and the session client.

Everything that crosses HTTP uses camelCase names on the wire, the same
shape the browser front-end sends, while Python code uses snake_case.
"""
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StudentContext(_Wire):
	name: Optional[str] = None
	class_level: Optional[str] = Field(default=None, alias="class")
	board: Optional[str] = "CBSE"

	@property
	def identity(self) -> Optional[Tuple[str, str]]:
		name = (self.name or "").strip()
		cls = (self.class_level or "").strip()
		if not name or not cls:
			return None
		return name, cls


class ChatHistoryItem(_Wire):
	role: Literal["user", "assistant", "system"]
	content: str


class ExamAttempt(_Wire):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

	id: str = Field(default_factory=lambda: uuid.uuid4().hex)
	date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
	subject: str = "General"
	chapters: List[str] = Field(default_factory=list)
	marks_obtained: float = Field(default=0, ge=0)
	total_marks: float = Field(default=0, ge=0)
	score_percent: Optional[int] = None
	time_taken_seconds: int = Field(default=0, ge=0)
	time_taken: Optional[str] = None
	raw_answer_text: str = ""

	@field_validator("date")
	@classmethod
	def _utc(cls, value: datetime) -> datetime:
		# naive values are UTC; mixing naive and aware dates breaks ordering
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)


class ChatRequest(_Wire):
	mode: str
	message: str = ""
	history: List[ChatHistoryItem] = Field(default_factory=list)
	student: Optional[StudentContext] = None
	# PDF uploads arrive as extracted text, images as a data: URL
	uploaded_text: Optional[str] = None
	upload_type: Optional[Literal["pdf", "image"]] = None
	# Only read in progress mode
	attempts: List[ExamAttempt] = Field(default_factory=list)


class ChatResponse(_Wire):
	reply: str = ""
	# Examiner control fields; absent for ordinary dialogue
	start_time: Optional[int] = None
	duration_minutes: Optional[int] = None
	exam_ended: Optional[bool] = None
	marks_obtained: Optional[float] = None
	total_marks: Optional[float] = None
	percentage: Optional[float] = None
	time_taken: Optional[str] = None
	time_taken_seconds: Optional[int] = None
	subject: Optional[str] = None
	chapters: Optional[List[str]] = None


class UploadResult(_Wire):
	uploaded_text: str
	upload_type: Literal["pdf", "image"]
	filename: Optional[str] = None


class PdfRequest(BaseModel):
	content: str = ""


class SaveAttemptRequest(_Wire):
	student: StudentContext
	attempt: ExamAttempt
