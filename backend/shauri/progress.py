from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .examiner.paper import round_half_up
from .schemas import ExamAttempt


EXCELLENT = "Excellent"
GOOD = "Good"
AVERAGE = "Average"
WEAK = "Weak"
NEEDS_WORK = "Needs Work"

IMPROVING = "Improving"
DECLINING = "Declining"
STABLE = "Stable"


@dataclass(frozen=True)
class SubjectStat:
	subject: str
	scores: List[int]
	latest: int
	band: str
	trend: Optional[str]


@dataclass(frozen=True)
class ProgressSummary:
	subjects: List[SubjectStat]
	overall_average: Optional[int]
	strongest: Optional[str]
	weakest: Optional[str]
	total_attempts: int
	total_time_seconds: int


def band(score: float) -> str:
	if score >= 86:
		return EXCELLENT
	if score >= 71:
		return GOOD
	if score >= 51:
		return AVERAGE
	if score >= 31:
		return WEAK
	return NEEDS_WORK


def trend(scores: Sequence[float]) -> Optional[str]:
	if len(scores) < 2:
		return None
	diff = scores[-1] - scores[-2]
	if diff > 0:
		return IMPROVING
	if diff < 0:
		return DECLINING
	return STABLE


def _scored(attempts: Sequence[ExamAttempt]) -> List[ExamAttempt]:
	return [a for a in attempts if isinstance(a.score_percent, (int, float)) and not isinstance(a.score_percent, bool)]


def subject_stats(attempts: Sequence[ExamAttempt]) -> List[SubjectStat]:
	"""Per-subject statistics, subjects in order of first appearance.

	``attempts`` must already be chronological; nothing here re-sorts them.
	"""
	grouped: Dict[str, List[int]] = {}
	for attempt in _scored(attempts):
		grouped.setdefault(attempt.subject, []).append(attempt.score_percent)
	return [
		SubjectStat(subject=subject, scores=scores, latest=scores[-1], band=band(scores[-1]), trend=trend(scores))
		for subject, scores in grouped.items()
	]


def overall_average(stats: Sequence[SubjectStat]) -> Optional[int]:
	if not stats:
		return None
	return round_half_up(sum(s.latest for s in stats) / len(stats))


def summarize(attempts: Sequence[ExamAttempt]) -> ProgressSummary:
	stats = subject_stats(attempts)
	# max/min keep the first of equal scores, so ties resolve to the earlier subject
	strongest = max(stats, key=lambda s: s.latest).subject if stats else None
	weakest = min(stats, key=lambda s: s.latest).subject if stats else None
	scored = _scored(attempts)
	return ProgressSummary(
		subjects=stats,
		overall_average=overall_average(stats),
		strongest=strongest,
		weakest=weakest,
		total_attempts=len(scored),
		total_time_seconds=sum(a.time_taken_seconds for a in scored),
	)
