import asyncio
import logging
from typing import Iterable, Mapping, Sequence

from config import Settings
from models import (
    BatchError,
    BatchResult,
    Evaluation,
    ShortlistEntry,
    Submission,
    SubmissionStatus,
)
from services.errors import SubmissionNotFound, SubmissionValidationError
from services.llm_scoring import (
    ScoringBackend,
    build_prompt,
    default_backends,
    parse_score_response,
    select_backend,
)
from services.normalizer import normalize
from services.store import EvaluationStore, rank, top

logger = logging.getLogger(__name__)


def _drive_placeholder(team_name: str, drive_link: str) -> str:
    return (
        f"[PPT submitted via Google Drive: {drive_link}]\n"
        f"Team: {team_name}\n"
        "Note: The actual PPT content should be extracted from the Drive link. "
        "For now, evaluating based on available metadata."
    )


class JuryService:
    """
    Owns the submission cache and the evaluation store for one process.

    Lifecycle: empty on construction, filled by load/evaluate calls, reset by clear().
    """

    def __init__(
        self,
        backends: Sequence[ScoringBackend],
        theme: str,
        batch_delay: float = 1.0,
        hackathon_name: str = "",
        store: EvaluationStore | None = None,
    ):
        self.backends = list(backends)
        self.theme = theme
        self.batch_delay = batch_delay
        self.hackathon_name = hackathon_name
        self.store = store or EvaluationStore()
        self._submissions: list[Submission] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "JuryService":
        return cls(
            backends=default_backends(settings),
            theme=settings.hackathon_theme,
            batch_delay=settings.batch_delay_seconds,
            hackathon_name=settings.hackathon_name,
        )

    # -- submissions -------------------------------------------------------

    @property
    def submissions(self) -> list[Submission]:
        return list(self._submissions)

    def load_rows(
        self,
        rows: Iterable[Mapping[str, str]],
        field_candidates: Mapping[str, Sequence[str]] | None = None,
        first_row_index: int = 2,
    ) -> list[Submission]:
        # row 1 of a sheet is the header, so data starts at 2
        loaded = [
            normalize(row, field_candidates, row_index=first_row_index + i)
            for i, row in enumerate(rows)
        ]
        self._submissions = loaded
        logger.info("Loaded %d submissions", len(loaded))
        return list(loaded)

    def add_submission(self, submission: Submission) -> Submission:
        self._submissions.append(submission)
        return submission

    def get_submission(self, submission_id: str) -> Submission | None:
        for s in self._submissions:
            if s.id == submission_id:
                return s
        return None

    def delete_submission(self, submission_id: str) -> Submission:
        for i, s in enumerate(self._submissions):
            if s.id == submission_id:
                removed = self._submissions.pop(i)
                self.store.remove(removed.team_name)
                return removed
        raise SubmissionNotFound(f"Submission not found: {submission_id}")

    def _mark_evaluated(self, team_name: str) -> None:
        for s in self._submissions:
            if s.team_name == team_name:
                s.status = SubmissionStatus.EVALUATED

    def _email_for(self, team_name: str) -> str | None:
        for s in self._submissions:
            if s.team_name == team_name and s.email:
                return s.email
        return None

    # -- scoring -----------------------------------------------------------

    async def evaluate(
        self,
        team_name: str,
        content: str = "",
        drive_link: str = "",
        theme: str | None = None,
        email: str | None = None,
    ) -> Evaluation:
        team_name = (team_name or "").strip()
        content = (content or "").strip()
        drive_link = (drive_link or "").strip()
        if not team_name:
            raise SubmissionValidationError("Team name is required")
        if not content and not drive_link:
            raise SubmissionValidationError("Either PPT content or Drive link is required")
        if not content:
            content = _drive_placeholder(team_name, drive_link)

        backend = select_backend(self.backends)
        prompt = build_prompt(team_name, content, theme or self.theme)
        logger.info("Using %s for: %s", backend.name, team_name)

        # backend clients are blocking; keep the event loop free
        text = await asyncio.to_thread(backend.score, prompt)
        result = parse_score_response(text)

        evaluation = Evaluation(
            team_name=team_name,
            email=email if email is not None else self._email_for(team_name),
            drive_link=drive_link or None,
            scores=result.scores,
            strengths=result.strengths,
            weaknesses=result.weaknesses,
            summary=result.summary,
            recommendation=result.recommendation,
        )
        self.store.upsert(team_name, evaluation)
        self._mark_evaluated(team_name)
        logger.info("Scored %s: %s/10 (%s)", team_name, evaluation.normalized_score, evaluation.recommendation.value)
        return evaluation

    async def evaluate_submission(self, submission: Submission, theme: str | None = None) -> Evaluation:
        return await self.evaluate(
            submission.team_name,
            content=submission.scoring_content(),
            drive_link=submission.drive_link,
            theme=theme,
            email=submission.email or None,
        )

    async def evaluate_batch(
        self,
        submissions: Sequence[Submission] | None = None,
        theme: str | None = None,
    ) -> BatchResult:
        """
        Score submissions one at a time, pausing `batch_delay` seconds between calls.
        A failing item is recorded in `errors` and the loop moves on.
        """
        items = list(self._submissions if submissions is None else submissions)
        batch = BatchResult()
        for i, submission in enumerate(items):
            if i > 0 and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)
            try:
                evaluation = await self.evaluate_submission(submission, theme=theme)
            except Exception as e:
                logger.warning("Batch item failed for %s: %s", submission.team_name, e)
                batch.errors.append(BatchError(team_name=submission.team_name, error=str(e)))
                continue
            batch.results.append(evaluation)
        logger.info("Batch done: %d scored, %d failed", len(batch.results), len(batch.errors))
        return batch

    # -- results -----------------------------------------------------------

    def evaluations(self) -> list[Evaluation]:
        return self.store.all()

    def rank(self) -> list[Evaluation]:
        return rank(self.store.all())

    def top(self, n: int | None = None) -> list[Evaluation]:
        return top(self.store.all(), n)

    def shortlist(self, n: int | None = None) -> list[ShortlistEntry]:
        return [
            ShortlistEntry(team_name=e.team_name, email=e.email or "", score=e.normalized_score, selected=True)
            for e in self.top(n)
        ]

    def rejected(self, shortlisted_names: Iterable[str]) -> list[ShortlistEntry]:
        chosen = set(shortlisted_names)
        return [
            ShortlistEntry(team_name=e.team_name, email=e.email, score=e.normalized_score, selected=False)
            for e in self.store.all()
            if e.team_name not in chosen and e.email
        ]

    def clear(self) -> None:
        self.store.clear()
        for s in self._submissions:
            s.status = SubmissionStatus.PENDING
        logger.info("All evaluations cleared")
