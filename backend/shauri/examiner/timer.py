from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class ExamTimer:
	"""Calls ``on_tick`` every ``interval`` seconds from a single background task.

	``start`` is a no-op while a task is already running, and ``cancel`` is safe
	to call any number of times. Usable as a context manager so the task is
	released when the block exits.
	"""

	def __init__(self, on_tick: Callable[[], None], interval: float = 1.0) -> None:
		self._on_tick = on_tick
		self.interval = interval
		self._task: Optional[asyncio.Task] = None

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	def start(self) -> bool:
		if self.running:
			return False
		self._task = asyncio.get_running_loop().create_task(self._run())
		return True

	def cancel(self) -> None:
		task, self._task = self._task, None
		if task is not None and not task.done():
			task.cancel()

	async def _run(self) -> None:
		while True:
			await asyncio.sleep(self.interval)
			try:
				self._on_tick()
			except Exception:
				logger.exception("Exam timer tick failed")

	def __enter__(self) -> "ExamTimer":
		self.start()
		return self

	def __exit__(self, *exc_info) -> None:
		self.cancel()
