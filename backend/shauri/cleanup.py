from __future__ import annotations
import logging

from .routers.chat import purge_stale_exams
from .settings import settings


logger = logging.getLogger(__name__)


def purge_abandoned_exams() -> int:
	# Exams that were started or noted but never submitted
	max_age = settings.exam_session_ttl_hours * 60 * 60
	removed = purge_stale_exams(max_age)
	if removed:
		logger.info("Dropped %d abandoned exam session(s)", removed)
	return removed
