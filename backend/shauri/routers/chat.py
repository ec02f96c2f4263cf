from __future__ import annotations
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException

from ..examiner.paper import (
	detect_subject,
	duration_minutes,
	extract_chapters,
	format_duration,
	format_evaluation,
	looks_like_subject_request,
	paper_reply,
	parse_evaluation,
)
from ..gemini_client import GeminiClient
from ..prompts import GLOBAL_CONTEXT, EVALUATION_RULES, MODES, evaluation_prompt, paper_prompt, system_prompt
from ..schemas import ChatRequest, ChatResponse, StudentContext
from ..uploads import UPLOAD_MARKER, parse_data_url


logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

AI_ERROR_REPLY = "AI server error. Please try again."

PAPER_TEMPERATURE = 0.75
EVALUATION_TEMPERATURE = 0.2

_GREETINGS = {"hi", "hello", "hey"}
_SUBMIT_WORDS = {"submit", "done", "finished"}


class ServerExam:
	def __init__(self) -> None:
		self.status = "IDLE"
		self.subject_request: Optional[str] = None
		self.question_paper: Optional[str] = None
		self.answers: List[str] = []
		self.started_at: Optional[int] = None
		self.updated_at = time.time()

	def touch(self) -> None:
		self.updated_at = time.time()


_exams: Dict[str, ServerExam] = {}


def _exam_key(student: Optional[StudentContext]) -> str:
	if student is None or not student.name:
		return "anonymous"
	return f"{student.name}_{student.class_level or 'unknown'}"


def purge_stale_exams(max_age_seconds: float, now: Optional[float] = None) -> int:
	now = time.time() if now is None else now
	stale = [k for k, exam in _exams.items() if now - exam.updated_at > max_age_seconds]
	for key in stale:
		del _exams[key]
	return len(stale)


def _message_with_upload(req: ChatRequest) -> Dict[str, Any]:
	content = req.message
	parts: List[Dict[str, Any]] = []
	if req.uploaded_text and req.upload_type == "pdf":
		content = f"{content}{UPLOAD_MARKER}{req.uploaded_text.strip()}"
	elif req.uploaded_text and req.upload_type == "image":
		parsed = parse_data_url(req.uploaded_text)
		if parsed is None:
			raise HTTPException(status_code=400, detail="uploadedText is not an image data URL")
		mime, data = parsed
		parts.append({"inline_data": {"mime_type": mime, "data": data}})
	message: Dict[str, Any] = {"role": "user", "content": content}
	if parts:
		message["parts"] = parts
	return message


async def _call_model(messages: List[Dict[str, Any]], temperature: Optional[float] = None) -> str:
	try:
		async with GeminiClient() as client:
			return await client.chat(messages, temperature=temperature)
	except Exception as e:
		logger.exception("Model call failed")
		raise HTTPException(status_code=500, detail=AI_ERROR_REPLY) from e


async def _examiner(req: ChatRequest) -> ChatResponse:
	student = req.student or StudentContext()
	key = _exam_key(student)
	exam = _exams.get(key) or ServerExam()
	text = req.message.strip()
	lower = text.lower()

	if exam.status == "IDLE":
		if lower in _GREETINGS:
			return ChatResponse(reply=f"Hello {student.name or 'Student'}. Provide subject and chapters for the test.")
		if any(k in lower for k in ("class", "name", "do you know")):
			return ChatResponse(
				reply=f"Student: {student.name or 'Unknown'}, Class {student.class_level or 'Unknown'}. Provide subject and chapters for the test."
			)
		if lower == "start":
			if not exam.subject_request:
				return ChatResponse(reply="Specify subject and chapters before starting.")
			duration = duration_minutes(exam.subject_request)
			paper = await _call_model(
				[
					{"role": "system", "content": system_prompt("examiner", student.name, student.class_level)},
					{"role": "user", "content": paper_prompt(student.class_level, exam.subject_request, duration)},
				],
				PAPER_TEMPERATURE,
			)
			exam.status = "IN_EXAM"
			exam.question_paper = paper
			exam.answers = []
			exam.started_at = int(time.time() * 1000)
			exam.touch()
			_exams[key] = exam
			logger.info("Exam started for %s (%d minutes)", key, duration)
			return ChatResponse(
				reply=paper_reply(paper, duration),
				start_time=exam.started_at,
				duration_minutes=duration,
				subject=detect_subject(exam.subject_request),
				chapters=extract_chapters(exam.subject_request),
			)
		if looks_like_subject_request(lower):
			exam.subject_request = text
			exam.touch()
			_exams[key] = exam
			return ChatResponse(reply="Test noted. Type START to begin.")
		return ChatResponse(reply="Examiner Mode conducts tests only. Provide subject and chapters.")

	if lower in _SUBMIT_WORDS:
		elapsed = max(0, int(time.time() - exam.started_at / 1000)) if exam.started_at else 0
		result_text = await _call_model(
			[
				{"role": "system", "content": GLOBAL_CONTEXT},
				{"role": "system", "content": EVALUATION_RULES},
				{"role": "user", "content": evaluation_prompt(exam.question_paper or "", exam.answers)},
			],
			EVALUATION_TEMPERATURE,
		)
		_exams.pop(key, None)
		parsed = parse_evaluation(result_text)
		if parsed is None:
			logger.warning("Evaluation for %s was not valid JSON; scoring as zero", key)
			parsed = {
				"marksObtained": 0,
				"totalMarks": 0,
				"percentage": 0,
				"detailedEvaluation": result_text,
			}
		subject = exam.subject_request or ""
		logger.info("Exam submitted for %s: %s/%s", key, parsed["marksObtained"], parsed["totalMarks"])
		return ChatResponse(
			reply=format_evaluation(
				parsed["detailedEvaluation"],
				parsed["marksObtained"],
				parsed["totalMarks"],
				parsed["percentage"],
				elapsed,
			),
			exam_ended=True,
			time_taken_seconds=elapsed,
			time_taken=format_duration(elapsed),
			subject=detect_subject(subject),
			chapters=extract_chapters(subject),
			marks_obtained=parsed["marksObtained"],
			total_marks=parsed["totalMarks"],
			percentage=parsed["percentage"],
		)

	answer = _message_with_upload(req)["content"]
	exam.answers.append(answer)
	exam.touch()
	_exams[key] = exam
	return ChatResponse(reply="")


def _progress_summary_text(req: ChatRequest) -> str:
	return "\n".join(
		f"Subject: {a.subject}, Score: {a.score_percent}%, Time: {a.time_taken_seconds}s"
		for a in req.attempts
	)


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(req: ChatRequest):
	mode = (req.mode or "").lower()
	if mode not in MODES:
		return ChatResponse(reply="Invalid mode.")

	if mode == "examiner":
		return await _examiner(req)

	student = req.student or StudentContext()
	system = system_prompt(mode, student.name, student.class_level)

	if mode == "progress":
		reply = await _call_model([
			{"role": "system", "content": system},
			{"role": "user", "content": f"Analyze this student performance data:\n{_progress_summary_text(req)}"},
		])
		return ChatResponse(reply=reply)

	messages: List[Dict[str, Any]] = [{"role": "system", "content": system}]
	messages.extend({"role": h.role, "content": h.content} for h in req.history)
	messages.append(_message_with_upload(req))
	reply = await _call_model(messages)
	return ChatResponse(reply=reply)
