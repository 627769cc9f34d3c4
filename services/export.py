import csv
import io
from datetime import date
from typing import Iterable

from models import Evaluation
from services.store import rank

CSV_HEADERS = [
    "Rank",
    "Team Name",
    "Email",
    "Idea",
    "Solution Relevance",
    "Novelty",
    "Feasibility",
    "Innovation",
    "Total (50)",
    "Score (10)",
    "Recommendation",
    "Summary",
]


def evaluations_to_csv(evaluations: Iterable[Evaluation]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for i, e in enumerate(rank(evaluations), start=1):
        s = e.scores
        writer.writerow([
            i,
            e.team_name,
            e.email or "",
            s.idea,
            s.solution_relevance,
            s.novelty,
            s.feasibility,
            s.innovation,
            e.total_score,
            e.normalized_score,
            e.recommendation.value,
            e.summary,
        ])
    return buf.getvalue()


def export_filename(today: date | None = None) -> str:
    return f"jury_results_{(today or date.today()).isoformat()}.csv"
