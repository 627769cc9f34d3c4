from __future__ import annotations

import pytest

from models import Evaluation, Recommendation, ScoreSet
from services.store import EvaluationStore, rank, top


def make_eval(team: str, *scores: int) -> Evaluation:
    idea, rel, nov, feas, inn = scores
    return Evaluation(
        team_name=team,
        scores=ScoreSet(idea=idea, solution_relevance=rel, novelty=nov, feasibility=feas, innovation=inn),
        recommendation=Recommendation.MAYBE,
    )


def test_totals_are_derived_from_scores():
    e = make_eval("Nova", 8, 7, 9, 6, 8)
    assert e.total_score == 38
    assert e.normalized_score == 7.6
    dumped = e.model_dump()
    assert dumped["total_score"] == 38 and dumped["normalized_score"] == 7.6


def test_scores_out_of_range_rejected():
    with pytest.raises(ValueError):
        ScoreSet(idea=0, solution_relevance=5, novelty=5, feasibility=5, innovation=5)
    with pytest.raises(ValueError):
        ScoreSet(idea=11, solution_relevance=5, novelty=5, feasibility=5, innovation=5)


def test_upsert_overwrites_in_place():
    store = EvaluationStore()
    store.upsert("A", make_eval("A", 5, 5, 5, 5, 5))
    store.upsert("B", make_eval("B", 6, 6, 6, 6, 6))
    replacement = make_eval("A", 9, 9, 9, 9, 9)
    store.upsert("A", replacement)
    assert len(store) == 2
    assert store.get("A") is replacement
    assert [e.team_name for e in store.all()] == ["A", "B"]


def test_snapshot_is_detached_from_store():
    store = EvaluationStore()
    store.upsert("A", make_eval("A", 5, 5, 5, 5, 5))
    snap = store.all()
    snap.clear()
    assert len(store) == 1


def test_remove_and_clear():
    store = EvaluationStore()
    store.upsert("A", make_eval("A", 5, 5, 5, 5, 5))
    assert "A" in store
    assert store.remove("A") is True
    assert store.remove("A") is False
    store.upsert("B", make_eval("B", 5, 5, 5, 5, 5))
    store.clear()
    assert store.all() == []


def test_rank_descending_and_stable():
    first_tie = make_eval("tie-1", 7, 7, 7, 7, 7)
    best = make_eval("best", 10, 10, 10, 10, 10)
    second_tie = make_eval("tie-2", 7, 7, 7, 7, 7)
    low = make_eval("low", 1, 1, 1, 1, 1)
    ranked = rank([first_tie, best, second_tie, low])
    assert [e.team_name for e in ranked] == ["best", "tie-1", "tie-2", "low"]


def test_top_is_prefix_of_rank():
    evals = [make_eval(f"t{i}", i, i, i, i, i) for i in range(1, 6)]
    assert [e.team_name for e in top(evals, 2)] == ["t5", "t4"]
    assert len(top(evals)) == 5
    assert len(top(evals, 50)) == 5
    assert top(evals, 0) == []
    with pytest.raises(ValueError):
        top(evals, -1)
