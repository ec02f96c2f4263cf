"""Turn an attached file into something a chat message can carry.

PDFs become inline text; images become a ``data:`` URL that the chat route
forwards to Gemini as an inline image part.
"""
from __future__ import annotations
import base64
import logging
import re
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .schemas import UploadResult
from .settings import settings


logger = logging.getLogger(__name__)

# Separates what the student typed from the attached file's text
UPLOAD_MARKER = "\n\n[Attached file]\n"
IMAGE_PLACEHOLDER = "[image]"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<data>[A-Za-z0-9+/=\s]+)$")

_IMAGE_MIME = {
	"PNG": "image/png",
	"JPEG": "image/jpeg",
	"WEBP": "image/webp",
	"GIF": "image/gif",
}


class UnsupportedUpload(ValueError):
	pass


def _is_pdf(filename: str, content_type: Optional[str], data: bytes) -> bool:
	return (
		data[:5] == b"%PDF-"
		or (content_type or "").lower() == "application/pdf"
		or filename.lower().endswith(".pdf")
	)


def pdf_to_text(data: bytes) -> str:
	try:
		reader = PdfReader(BytesIO(data))
		pages = [(page.extract_text() or "").strip() for page in reader.pages]
	except (PdfReadError, ValueError) as err:
		raise UnsupportedUpload(f"Could not read PDF: {err}") from err
	text = "\n\n".join(p for p in pages if p)
	if not text:
		raise UnsupportedUpload("PDF has no extractable text")
	return text


def image_to_data_url(data: bytes, max_side: Optional[int] = None) -> str:
	max_side = max_side or settings.upload_max_image_side
	try:
		img = Image.open(BytesIO(data))
		img.load()
	except (UnidentifiedImageError, OSError) as err:
		raise UnsupportedUpload(f"Could not read image: {err}") from err
	fmt = img.format or "PNG"
	if max(img.size) > max_side or fmt not in _IMAGE_MIME:
		img.thumbnail((max_side, max_side))
		if fmt not in ("JPEG", "PNG"):
			fmt = "PNG"
		if fmt == "JPEG" and img.mode not in ("RGB", "L"):
			img = img.convert("RGB")
		buf = BytesIO()
		img.save(buf, format=fmt)
		data = buf.getvalue()
	return f"data:{_IMAGE_MIME[fmt]};base64,{base64.b64encode(data).decode('ascii')}"


def extract_upload(filename: str, data: bytes, content_type: Optional[str] = None) -> UploadResult:
	if not data:
		raise UnsupportedUpload("Empty file")
	if _is_pdf(filename, content_type, data):
		return UploadResult(uploaded_text=pdf_to_text(data), upload_type="pdf", filename=filename)
	if (content_type or "").lower().startswith("image/") or re.search(r"\.(png|jpe?g|webp|gif)$", filename, re.IGNORECASE):
		return UploadResult(uploaded_text=image_to_data_url(data), upload_type="image", filename=filename)
	raise UnsupportedUpload(f"Unsupported file type: {content_type or filename}")


def parse_data_url(value: str) -> Optional[Tuple[str, str]]:
	"""``(mime_type, base64_data)`` for an image data URL, else ``None``."""
	match = _DATA_URL_RE.match((value or "").strip())
	if not match:
		return None
	return match.group("mime"), re.sub(r"\s+", "", match.group("data"))


def compose_message(prose: str, uploaded_text: Optional[str] = None, upload_type: Optional[str] = None) -> str:
	if not uploaded_text:
		return prose
	attached = IMAGE_PLACEHOLDER if upload_type == "image" else uploaded_text.strip()
	return f"{prose}{UPLOAD_MARKER}{attached}"


def split_message(content: str) -> Tuple[str, Optional[str]]:
	prose, sep, attached = content.partition(UPLOAD_MARKER)
	if not sep:
		return content, None
	return prose, attached
