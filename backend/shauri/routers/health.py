from fastapi import APIRouter

from .chat import _exams

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
	return {"status": "healthy", "open_exams": len(_exams)}
