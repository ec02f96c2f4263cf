from __future__ import annotations
import logging

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response

from ..pdf import render_paper
from ..schemas import PdfRequest, UploadResult
from ..uploads import UnsupportedUpload, extract_upload


logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])

PAPER_FILENAME = "shauri-exam-paper.pdf"


@router.post("/generate-pdf")
def generate_pdf(req: PdfRequest):
	try:
		data = render_paper(req.content or "No content")
	except Exception as e:
		logger.exception("PDF generation failed")
		raise HTTPException(status_code=500, detail="Failed to generate PDF") from e
	return Response(
		content=data,
		media_type="application/pdf",
		headers={"Content-Disposition": f"attachment; filename={PAPER_FILENAME}"},
	)


@router.post("/upload", response_model=UploadResult)
async def upload(file: UploadFile = File(...)):
	content = await file.read()
	try:
		return extract_upload(file.filename or "upload", content, file.content_type)
	except UnsupportedUpload as e:
		raise HTTPException(status_code=400, detail=str(e))
