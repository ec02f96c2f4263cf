"""Examiner mode session.

One ``ExamSession`` per exam. It owns the message list, the exam clock and
the lifecycle ``NotStarted -> Active -> Ended``; replies from the chat
transport drive the transitions. The session is an async context manager:
leaving the block cancels the timer, and a reply that arrives after that is
dropped.
"""
from __future__ import annotations
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from ..schemas import ChatHistoryItem, ExamAttempt, StudentContext
from ..store import AttemptStore
from ..transport import ChatTransport, Dialogue, ExamEnded, ExamStarted, Reply, Scoring, TransportError
from ..uploads import compose_message
from .paper import PAPER_MARKER, extract_subject, format_duration, looks_like_paper, score_percent, split_paper
from .timer import ExamTimer


logger = logging.getLogger(__name__)

GREETING = "hi"
TRANSPORT_FAILURE_NOTICE = "Could not reach the examiner. Please send your message again."


class ExamState(str, Enum):
	NOT_STARTED = "NotStarted"
	ACTIVE = "Active"
	ENDED = "Ended"


@dataclass
class SessionContext:
	"""Who is studying and which browser-session this is.

	Built once when the student enters a mode and passed to every session
	created for that visit. ``greeted`` makes the greeting exchange fire once
	per ``session_id`` even if the session object is rebuilt.
	"""
	student: StudentContext = field(default_factory=StudentContext)
	session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
	greeted: bool = False


@dataclass(frozen=True)
class Message:
	role: str
	content: str
	# Locally generated failure notices; shown, never sent back to the model
	notice: bool = False

	@classmethod
	def paper(cls, body: str) -> "Message":
		return cls(role="assistant", content=f"{PAPER_MARKER}{body}")

	@property
	def is_paper(self) -> bool:
		return self.content.startswith(PAPER_MARKER)

	@property
	def body(self) -> str:
		if self.is_paper:
			return self.content[len(PAPER_MARKER):]
		return self.content


def render_kind(message: Message) -> str:
	if message.role == "assistant" and (message.is_paper or looks_like_paper(message.content)):
		return "paper"
	return "dialogue"


class ExamSession:
	mode = "examiner"

	def __init__(
		self,
		context: SessionContext,
		transport: ChatTransport,
		store: Optional[AttemptStore] = None,
		*,
		clock: Callable[[], float] = time.time,
		tick_interval: float = 1.0,
	) -> None:
		self.context = context
		self.transport = transport
		self.store = store
		self._clock = clock
		self._timer = ExamTimer(self.tick, interval=tick_interval)
		self._messages: List[Message] = []
		self._inflight: Optional[asyncio.Future] = None
		self._closed = False
		self._state = ExamState.NOT_STARTED
		self._start_time: Optional[int] = None
		self._elapsed = 0
		self._subject: Optional[str] = None
		self._chapters: List[str] = []
		self._paper_text = ""
		self._attempt: Optional[ExamAttempt] = None

	async def __aenter__(self) -> "ExamSession":
		return self

	async def __aexit__(self, *exc_info) -> None:
		self.close()

	@property
	def session_id(self) -> str:
		return self.context.session_id

	@property
	def state(self) -> ExamState:
		return self._state

	@property
	def start_time(self) -> Optional[int]:
		return self._start_time

	@property
	def elapsed_seconds(self) -> int:
		return self._elapsed

	@property
	def subject(self) -> Optional[str]:
		return self._subject

	@property
	def paper_text(self) -> str:
		return self._paper_text

	@property
	def attempt(self) -> Optional[ExamAttempt]:
		return self._attempt

	@property
	def messages(self) -> tuple:
		return tuple(self._messages)

	@property
	def busy(self) -> bool:
		return self._inflight is not None and not self._inflight.done()

	@property
	def timer_running(self) -> bool:
		return self._timer.running

	@property
	def closed(self) -> bool:
		return self._closed

	def close(self) -> None:
		if self._closed:
			return
		self._closed = True
		self._timer.cancel()
		logger.debug("Session %s torn down in state %s", self.session_id, self._state.value)

	def append_message(self, message: Message) -> None:
		self._messages.append(message)

	def history(self) -> List[ChatHistoryItem]:
		return [
			ChatHistoryItem(role=m.role, content=m.content)
			for m in self._messages
			if not m.notice and not m.is_paper
		]

	async def greet(self) -> Optional[Reply]:
		if self.context.greeted:
			return None
		self.context.greeted = True
		reply = await self.send(GREETING)
		if reply is None:
			# dropped or failed; allow the next greet to try again
			self.context.greeted = False
		return reply

	async def send(self, text: str, *, uploaded_text: Optional[str] = None, upload_type: Optional[str] = None) -> Optional[Reply]:
		"""Send one student message; returns the decoded reply.

		Returns ``None`` when the send is dropped (another exchange in flight,
		session closed) or the exchange failed.
		"""
		if self._closed:
			return None
		if self.busy:
			logger.debug("Session %s: dropped send while a reply is pending", self.session_id)
			return None
		task = asyncio.ensure_future(self._exchange(text, uploaded_text, upload_type))
		self._inflight = task
		try:
			return await task
		finally:
			if self._inflight is task:
				self._inflight = None

	async def _exchange(self, text: str, uploaded_text: Optional[str], upload_type: Optional[str]) -> Optional[Reply]:
		history = self.history()
		self.append_message(Message(role="user", content=compose_message(text, uploaded_text, upload_type)))
		try:
			reply = await self.transport.exchange(
				self.mode,
				text,
				history,
				self.context.student,
				uploaded_text=uploaded_text,
				upload_type=upload_type,
			)
		except TransportError as err:
			logger.warning("Session %s: exchange failed: %s", self.session_id, err)
			if not self._closed:
				self.append_message(Message(role="assistant", content=TRANSPORT_FAILURE_NOTICE, notice=True))
			return None
		if self._closed:
			logger.debug("Session %s: ignoring reply after teardown", self.session_id)
			return None
		await self._apply(reply)
		return reply

	def _append_reply(self, text: str) -> None:
		# While collecting answers the examiner replies with an empty string
		if text and text.strip():
			self.append_message(Message(role="assistant", content=text))

	async def _apply(self, reply: Reply) -> None:
		if isinstance(reply, ExamStarted):
			if self.start_exam(reply.start_time, subject=reply.subject, chapters=reply.chapters):
				body, _ = split_paper(reply.reply)
				self._paper_text = body
				if self._subject is None:
					self._subject = extract_subject(body) or "General"
				self.append_message(Message.paper(body))
			self._append_reply(reply.reply)
		elif isinstance(reply, ExamEnded):
			self._append_reply(reply.reply)
			await self.end_exam(reply.scoring)
		elif isinstance(reply, Dialogue):
			self._append_reply(reply.text)

	def start_exam(self, server_start_time: int, *, subject: Optional[str] = None, chapters: Optional[List[str]] = None) -> bool:
		"""Enter ``Active``; ``server_start_time`` is epoch milliseconds.

		Returns ``False`` without touching anything when the exam has already
		started (or ended) or the session is closed.
		"""
		if self._state is not ExamState.NOT_STARTED or self._closed:
			logger.debug("Session %s: ignoring start signal in state %s", self.session_id, self._state.value)
			return False
		self._start_time = int(server_start_time)
		self._state = ExamState.ACTIVE
		if subject:
			self._subject = subject
		self._chapters = list(chapters or [])
		self.tick()
		self._timer.start()
		logger.info("Session %s: exam started (subject=%s)", self.session_id, self._subject)
		return True

	def tick(self) -> None:
		if self._state is not ExamState.ACTIVE or self._start_time is None:
			return
		self._elapsed = max(0, int(self._clock() - self._start_time / 1000))

	async def end_exam(self, scoring: Scoring) -> Optional[ExamAttempt]:
		if self._state is not ExamState.ACTIVE:
			logger.debug("Session %s: ignoring end signal in state %s", self.session_id, self._state.value)
			return None
		self.tick()
		self._timer.cancel()
		self._state = ExamState.ENDED
		attempt = self._build_attempt(scoring)
		self._attempt = attempt
		logger.info(
			"Session %s: exam ended, %s/%s (%s%%) in %ss",
			self.session_id, attempt.marks_obtained, attempt.total_marks, attempt.score_percent, attempt.time_taken_seconds,
		)
		if self.store is not None:
			try:
				await self.store.append(attempt, self.context.student)
			except Exception:
				logger.exception("Session %s: could not persist attempt %s", self.session_id, attempt.id)
		return attempt

	def _build_attempt(self, scoring: Scoring) -> ExamAttempt:
		marks = max(0.0, float(scoring.marks_obtained or 0))
		total = max(0.0, float(scoring.total_marks or 0))
		if scoring.subject:
			self._subject = scoring.subject
		return ExamAttempt(
			subject=self._subject or "General",
			chapters=list(scoring.chapters or self._chapters),
			marks_obtained=marks,
			total_marks=total,
			score_percent=score_percent(marks, total, scoring.percentage),
			time_taken_seconds=self._elapsed,
			time_taken=scoring.time_taken or format_duration(self._elapsed),
			raw_answer_text="\n".join(m.content for m in self._messages if m.role == "user"),
		)

	async def download_paper(self) -> bytes:
		if not self._paper_text:
			raise ValueError("No question paper in this session yet")
		return await self.transport.download_paper(self._paper_text)
