"""Client for the ``/chat`` API.

Replies are decoded once, here, into ``Dialogue``, ``ExamStarted`` or
``ExamEnded`` so nothing downstream inspects raw payloads for control fields.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import httpx
from pydantic import ValidationError

from .schemas import ChatHistoryItem, ChatRequest, ChatResponse, StudentContext, UploadResult
from .settings import settings


logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
	pass


@dataclass(frozen=True)
class Dialogue:
	text: str


@dataclass(frozen=True)
class ExamStarted:
	start_time: int
	reply: str
	subject: Optional[str] = None
	chapters: List[str] = field(default_factory=list)
	duration_minutes: Optional[int] = None


@dataclass(frozen=True)
class Scoring:
	marks_obtained: Optional[float] = None
	total_marks: Optional[float] = None
	percentage: Optional[float] = None
	time_taken: Optional[str] = None
	time_taken_seconds: Optional[int] = None
	subject: Optional[str] = None
	chapters: Optional[List[str]] = None


@dataclass(frozen=True)
class ExamEnded:
	reply: str
	scoring: Scoring


Reply = Union[Dialogue, ExamStarted, ExamEnded]


def decode_reply(mode: str, response: ChatResponse) -> Reply:
	if mode != "examiner":
		return Dialogue(response.reply)
	if response.exam_ended is True:
		return ExamEnded(
			reply=response.reply,
			scoring=Scoring(
				marks_obtained=response.marks_obtained,
				total_marks=response.total_marks,
				percentage=response.percentage,
				time_taken=response.time_taken,
				time_taken_seconds=response.time_taken_seconds,
				subject=response.subject,
				chapters=response.chapters,
			),
		)
	if response.start_time is not None:
		return ExamStarted(
			start_time=response.start_time,
			reply=response.reply,
			subject=response.subject,
			chapters=list(response.chapters or []),
			duration_minutes=response.duration_minutes,
		)
	return Dialogue(response.reply)


class ChatTransport:
	def __init__(self, base_url: Optional[str] = None, *, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None) -> None:
		self.base_url = (base_url or settings.api_url).rstrip("/")
		self._owns_client = client is None
		self._client = client or httpx.AsyncClient(
			base_url=self.base_url,
			timeout=timeout or settings.transport_timeout_seconds,
		)

	async def __aenter__(self) -> "ChatTransport":
		return self

	async def __aexit__(self, *exc_info) -> None:
		await self.aclose()

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()

	async def _post(self, path: str, **kwargs) -> httpx.Response:
		try:
			r = await self._client.post(path, **kwargs)
			r.raise_for_status()
		except httpx.HTTPStatusError as err:
			raise TransportError(f"{path} answered {err.response.status_code}") from err
		except httpx.RequestError as err:
			raise TransportError(f"{path} unreachable: {err}") from err
		return r

	async def exchange(
		self,
		mode: str,
		message: str,
		history: Sequence[ChatHistoryItem] = (),
		student: Optional[StudentContext] = None,
		*,
		uploaded_text: Optional[str] = None,
		upload_type: Optional[str] = None,
	) -> Reply:
		request = ChatRequest(
			mode=mode,
			message=message,
			history=list(history),
			student=student,
			uploaded_text=uploaded_text,
			upload_type=upload_type,
		)
		r = await self._post("/chat", json=request.model_dump(mode="json", by_alias=True, exclude_none=True))
		try:
			response = ChatResponse.model_validate(r.json())
		except (ValueError, ValidationError) as err:
			raise TransportError(f"Undecodable /chat reply: {r.text[:200]}") from err
		return decode_reply(mode, response)

	async def upload(self, filename: str, data: bytes, content_type: Optional[str] = None) -> UploadResult:
		files = {"file": (filename, data, content_type or "application/octet-stream")}
		r = await self._post("/upload", files=files)
		try:
			return UploadResult.model_validate(r.json())
		except (ValueError, ValidationError) as err:
			raise TransportError("Undecodable /upload reply") from err

	async def download_paper(self, paper_text: str) -> bytes:
		r = await self._post("/generate-pdf", json={"content": paper_text})
		return r.content
