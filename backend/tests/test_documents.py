import base64
from io import BytesIO

import pytest
from PIL import Image
from pypdf import PdfReader

from shauri.pdf import render_paper
from shauri.uploads import (
    IMAGE_PLACEHOLDER,
    UnsupportedUpload,
    compose_message,
    extract_upload,
    image_to_data_url,
    parse_data_url,
    split_message,
)


def _png(size=(20, 10), color="red"):
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class TestRenderPaper:
    def test_renders_text(self):
        data = render_paper("SECTION A\nQ1. Define force.")
        assert data.startswith(b"%PDF")
        text = PdfReader(BytesIO(data)).pages[0].extract_text()
        assert "Q1. Define force." in text

    def test_long_papers_paginate(self):
        data = render_paper("\n".join(f"Q{i}. question" for i in range(120)))
        reader = PdfReader(BytesIO(data))
        assert len(reader.pages) >= 3
        assert "Q119. question" in reader.pages[-1].extract_text()

    def test_non_latin_text_does_not_fail(self):
        assert render_paper("प्रश्न 1").startswith(b"%PDF")


class TestUploadExtraction:
    def test_pdf_text(self):
        result = extract_upload("answers.pdf", render_paper("My answer to Q1"))
        assert result.upload_type == "pdf"
        assert "My answer to Q1" in result.uploaded_text

    def test_small_image_is_kept(self):
        data = _png()
        result = extract_upload("photo.png", data, "image/png")
        assert result.upload_type == "image"
        mime, payload = parse_data_url(result.uploaded_text)
        assert mime == "image/png"
        assert base64.b64decode(payload) == data

    def test_large_image_is_downscaled(self):
        url = image_to_data_url(_png(size=(400, 100)), max_side=100)
        _, payload = parse_data_url(url)
        img = Image.open(BytesIO(base64.b64decode(payload)))
        assert max(img.size) == 100

    def test_unsupported(self):
        with pytest.raises(UnsupportedUpload):
            extract_upload("notes.txt", b"hello", "text/plain")
        with pytest.raises(UnsupportedUpload):
            extract_upload("empty.pdf", b"")
        with pytest.raises(UnsupportedUpload):
            extract_upload("broken.png", b"not an image", "image/png")


class TestUploadMarker:
    def test_compose_and_split(self):
        content = compose_message("see attached", "page one text", "pdf")
        assert split_message(content) == ("see attached", "page one text")

    def test_image_uses_placeholder(self):
        content = compose_message("what is this", "data:image/png;base64,AAAA", "image")
        assert split_message(content) == ("what is this", IMAGE_PLACEHOLDER)

    def test_without_upload(self):
        assert compose_message("plain") == "plain"
        assert split_message("plain") == ("plain", None)


class TestRoutes:
    def test_generate_pdf(self, client):
        r = client.post("/generate-pdf", json={"content": "SECTION A\nQ1"})
        assert r.status_code == 200
        assert r.headers["content-type"] == "application/pdf"
        assert "shauri-exam-paper.pdf" in r.headers["content-disposition"]
        assert r.content.startswith(b"%PDF")

    def test_upload_image(self, client):
        r = client.post("/upload", files={"file": ("photo.png", _png(), "image/png")})
        assert r.status_code == 200
        body = r.json()
        assert body["uploadType"] == "image"
        assert body["uploadedText"].startswith("data:image/png;base64,")

    def test_upload_rejects_unknown_type(self, client):
        r = client.post("/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert r.status_code == 400
