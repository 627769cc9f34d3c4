from typing import Iterable

from models import Evaluation


class EvaluationStore:
    """
    In-memory evaluations, one per team name.
    Re-scoring a team replaces its entry in place, so ranking ties keep first-seen order.
    """

    def __init__(self) -> None:
        self._items: dict[str, Evaluation] = {}

    def upsert(self, team_name: str, evaluation: Evaluation) -> None:
        self._items[team_name] = evaluation

    def get(self, team_name: str) -> Evaluation | None:
        return self._items.get(team_name)

    def remove(self, team_name: str) -> bool:
        return self._items.pop(team_name, None) is not None

    def all(self) -> list[Evaluation]:
        return list(self._items.values())

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, team_name: object) -> bool:
        return team_name in self._items


def rank(evaluations: Iterable[Evaluation]) -> list[Evaluation]:
    # sorted() is stable: equal scores stay in encounter order
    return sorted(evaluations, key=lambda e: e.normalized_score, reverse=True)


def top(evaluations: Iterable[Evaluation], n: int | None = None) -> list[Evaluation]:
    ranked = rank(evaluations)
    if n is None:
        return ranked
    if n < 0:
        raise ValueError("n must be >= 0")
    return ranked[:n]
