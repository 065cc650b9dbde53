"""Standard competition ranking tests."""

from __future__ import annotations

from rac.ranking.ranker import competition_ranks


def _ranks(scores: list[int]) -> list[int]:
    return [rank for rank, _ in competition_ranks(scores, lambda s: s)]


class TestCompetitionRanks:
    def test_ties_share_rank_and_skip(self):
        assert _ranks([5, 5, 3]) == [1, 1, 3]

    def test_sorted_descending(self):
        ranked = competition_ranks([3, 7, 5], lambda s: s)
        assert [item for _, item in ranked] == [7, 5, 3]
        assert [rank for rank, _ in ranked] == [1, 2, 3]

    def test_three_way_tie(self):
        assert _ranks([2, 9, 2, 2]) == [1, 2, 2, 2]

    def test_empty(self):
        assert competition_ranks([], lambda s: s) == []

    def test_equal_scores_keep_input_order(self):
        items = [("alice", 4), ("bob", 4), ("carol", 6)]
        ranked = competition_ranks(items, lambda item: item[1])
        assert [(rank, name) for rank, (name, _) in ranked] == [(1, "carol"), (2, "alice"), (2, "bob")]
