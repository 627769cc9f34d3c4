from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_validator


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    EVALUATED = "evaluated"


class Recommendation(str, Enum):
    SHORTLIST = "SHORTLIST"
    MAYBE = "MAYBE"
    REJECT = "REJECT"


class Submission(BaseModel):
    id: str = Field(default_factory=_new_id)
    team_name: str
    email: str = ""
    project_title: str = ""
    drive_link: str = ""
    description: str = ""
    members: str = ""
    status: SubmissionStatus = SubmissionStatus.PENDING
    row_index: int | None = None

    # team name is the evaluation store key; form cells often carry stray spaces
    @field_validator("team_name", "email", mode="before")
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    def scoring_content(self) -> str:
        """
        Text sent to the scoring backend: the description when the team gave one,
        otherwise whatever metadata the sheet had.
        """
        if self.description:
            return self.description
        return (
            f"Team: {self.team_name}\n"
            f"Project: {self.project_title or 'N/A'}\n"
            f"Members: {self.members or 'N/A'}\n"
            f"Drive Link: {self.drive_link or 'N/A'}"
        )


class ScoreSet(BaseModel):
    idea: int = Field(ge=1, le=10)
    solution_relevance: int = Field(ge=1, le=10)
    novelty: int = Field(ge=1, le=10)
    feasibility: int = Field(ge=1, le=10)
    innovation: int = Field(ge=1, le=10)

    @property
    def total(self) -> int:
        return self.idea + self.solution_relevance + self.novelty + self.feasibility + self.innovation

    @property
    def normalized(self) -> float:
        return round(self.total / 5, 1)


class ScoreResult(BaseModel):
    """Rubric object parsed out of the model's reply. Reported totals are ignored."""

    scores: ScoreSet
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    summary: str = ""
    recommendation: Recommendation

    @field_validator("recommendation", mode="before")
    @classmethod
    def _upper_recommendation(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class Evaluation(BaseModel):
    id: str = Field(default_factory=_new_id)
    team_name: str
    email: str | None = None
    drive_link: str | None = None
    scores: ScoreSet
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    summary: str = ""
    recommendation: Recommendation
    timestamp: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def total_score(self) -> int:
        return self.scores.total

    @computed_field
    @property
    def normalized_score(self) -> float:
        return self.scores.normalized


class ShortlistEntry(BaseModel):
    team_name: str
    email: str = ""
    score: float
    selected: bool = True


class BatchError(BaseModel):
    team_name: str
    error: str


class BatchResult(BaseModel):
    results: list[Evaluation] = Field(default_factory=list)
    errors: list[BatchError] = Field(default_factory=list)


class NoticeOutcome(BaseModel):
    team_name: str
    email: str = ""
    status: str | None = None
    error: str | None = None


class NoticeReport(BaseModel):
    results: list[NoticeOutcome] = Field(default_factory=list)
    errors: list[NoticeOutcome] = Field(default_factory=list)

    @property
    def total_sent(self) -> int:
        return len(self.results)
