import asyncio
import logging

from fastapi import FastAPI

from .db import Base, engine, ensure_schema
from .cleanup import purge_abandoned_exams
from .settings import settings
from .routers import health, chat
from .routers import documents
from .routers import progress

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Shauri Tutor API")
app.include_router(health.router)
app.include_router(chat.router)
app.include_router(documents.router)
app.include_router(progress.router)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(60 * 60)
		try:
			purge_abandoned_exams()
		except Exception:
			logger.exception("Exam cleanup failed")


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema migration failed")
	# Start periodic cleanup loop
	app.state.cleanup_task = asyncio.create_task(_cleanup_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	task = getattr(app.state, "cleanup_task", None)
	if task is not None:
		task.cancel()
