from __future__ import annotations
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas


FONT = "Helvetica"
FONT_SIZE = 12
LINE_HEIGHT = 16
MARGIN = 40


def _wrap(line: str, width: float) -> list[str]:
	if not line.strip():
		return [""]
	out: list[str] = []
	current = ""
	for word in line.split(" "):
		candidate = f"{current} {word}" if current else word
		if stringWidth(candidate, FONT, FONT_SIZE) <= width or not current:
			current = candidate
		else:
			out.append(current)
			current = word
	out.append(current)
	return out


def _latin1(text: str) -> str:
	# The built-in Helvetica only covers Latin-1
	return text.encode("latin-1", errors="replace").decode("latin-1")


def render_paper(content: str, title: str = "Question Paper") -> bytes:
	"""Render plain text onto A4 pages, wrapping long lines and adding pages as needed."""
	buf = BytesIO()
	page_width, page_height = A4
	c = canvas.Canvas(buf, pagesize=A4)
	c.setTitle(title)
	c.setFont(FONT, FONT_SIZE)
	y = page_height - MARGIN
	for raw in _latin1(content or "No content").replace("\t", "    ").splitlines():
		for line in _wrap(raw, page_width - 2 * MARGIN):
			if y < MARGIN:
				c.showPage()
				c.setFont(FONT, FONT_SIZE)
				y = page_height - MARGIN
			c.drawString(MARGIN, y, line)
			y -= LINE_HEIGHT
	c.showPage()
	c.save()
	return buf.getvalue()
