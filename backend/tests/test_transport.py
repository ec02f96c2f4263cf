import json

import httpx
import pytest

from shauri.schemas import ChatHistoryItem, ChatResponse
from shauri.transport import ChatTransport, Dialogue, ExamEnded, ExamStarted, TransportError, decode_reply


def _transport(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return ChatTransport(client=client)


class TestDecodeReply:
    def test_plain_reply(self):
        assert decode_reply("examiner", ChatResponse(reply="Test noted.")) == Dialogue("Test noted.")

    def test_start_signal(self):
        reply = decode_reply("examiner", ChatResponse(reply="paper", start_time=1700000000000, subject="Science", duration_minutes=60))
        assert isinstance(reply, ExamStarted)
        assert reply.start_time == 1700000000000
        assert reply.subject == "Science"
        assert reply.chapters == []

    def test_end_signal_wins_over_start(self):
        reply = decode_reply("examiner", ChatResponse(reply="done", exam_ended=True, start_time=1, marks_obtained=3, total_marks=4))
        assert isinstance(reply, ExamEnded)
        assert reply.scoring.marks_obtained == 3
        assert reply.scoring.total_marks == 4

    def test_exam_ended_false_is_dialogue(self):
        assert decode_reply("examiner", ChatResponse(reply="x", exam_ended=False)) == Dialogue("x")

    def test_control_fields_ignored_outside_examiner(self):
        assert decode_reply("teacher", ChatResponse(reply="x", start_time=5, exam_ended=True)) == Dialogue("x")


class TestChatTransport:
    async def test_request_shape(self, student):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"reply": "hello"})

        transport = _transport(handler)
        reply = await transport.exchange(
            "teacher",
            "what is force?",
            [ChatHistoryItem(role="user", content="hi")],
            student,
            uploaded_text="page",
            upload_type="pdf",
        )
        assert reply == Dialogue("hello")
        body = seen["body"]
        assert seen["path"] == "/chat"
        assert body["mode"] == "teacher"
        assert body["message"] == "what is force?"
        assert body["history"] == [{"role": "user", "content": "hi"}]
        assert body["student"]["class"] == "9"
        assert body["uploadedText"] == "page"
        assert body["uploadType"] == "pdf"

    async def test_camel_case_control_fields(self):
        def handler(request):
            return httpx.Response(200, json={
                "reply": "Total Marks: 62/80",
                "examEnded": True,
                "marksObtained": 62,
                "totalMarks": 80,
                "percentage": 77.5,
                "timeTaken": "5m 0s",
                "subject": "Science",
                "chapters": ["Chapter 1"],
            })

        reply = await _transport(handler).exchange("examiner", "submit")
        assert isinstance(reply, ExamEnded)
        assert reply.scoring.percentage == 77.5
        assert reply.scoring.time_taken == "5m 0s"
        assert reply.scoring.chapters == ["Chapter 1"]

    @pytest.mark.parametrize("response", [
        httpx.Response(500, json={"detail": "AI server error. Please try again."}),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json={"reply": ["not", "a", "string"]}),
    ])
    async def test_failures_raise_transport_error(self, response):
        transport = _transport(lambda request: response)
        with pytest.raises(TransportError):
            await transport.exchange("teacher", "hi")

    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            await _transport(handler).exchange("teacher", "hi")

    async def test_download_paper(self):
        def handler(request):
            assert json.loads(request.content) == {"content": "SECTION A"}
            return httpx.Response(200, content=b"%PDF-1.4", headers={"Content-Type": "application/pdf"})

        assert await _transport(handler).download_paper("SECTION A") == b"%PDF-1.4"

    async def test_upload(self):
        def handler(request):
            assert request.url.path == "/upload"
            return httpx.Response(200, json={"uploadedText": "text", "uploadType": "pdf", "filename": "a.pdf"})

        result = await _transport(handler).upload("a.pdf", b"%PDF-", "application/pdf")
        assert result.uploaded_text == "text"
        assert result.upload_type == "pdf"
