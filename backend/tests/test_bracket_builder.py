"""
Tests for single-elimination bracket layout: fold order, byes, round shape.
"""

import pytest

from app.services.bracket_builder import (
    MATCH_COMPLETED,
    MATCH_PENDING,
    BracketValidationError,
    bracket_fold_positions,
    bracket_size,
    layout_single_elimination,
    next_slot,
    round_count,
)


def _ids(n: int) -> list[int]:
    """Helper: player ids 101..100+n in seed order."""
    return [100 + s for s in range(1, n + 1)]


def _by_round(slots):
    rounds = {}
    for s in slots:
        rounds.setdefault(s.round_number, []).append(s)
    return rounds


class TestSizing:
    @pytest.mark.parametrize("players,size", [(2, 2), (3, 4), (4, 4), (5, 8), (8, 8), (9, 16)])
    def test_bracket_size(self, players, size):
        assert bracket_size(players) == size

    def test_round_count(self):
        assert round_count(2) == 1
        assert round_count(8) == 3
        assert round_count(16) == 4


class TestBracketFoldPositions:
    def test_4_entries(self):
        assert bracket_fold_positions(4) == [1, 4, 2, 3]

    def test_8_entries(self):
        assert bracket_fold_positions(8) == [1, 8, 4, 5, 3, 6, 2, 7]

    def test_all_seeds_present(self):
        for n in (2, 4, 8, 16, 32):
            assert sorted(bracket_fold_positions(n)) == list(range(1, n + 1))


class TestNextSlot:
    def test_even_position_fills_player1(self):
        assert next_slot(0, 2) == (1, 1, "player1_id")

    def test_odd_position_fills_player2(self):
        assert next_slot(0, 3) == (1, 1, "player2_id")

    def test_feeders_of_each_match(self):
        # positions 2p and 2p+1 feed position p
        for p in range(4):
            assert next_slot(1, 2 * p)[1] == p
            assert next_slot(1, 2 * p + 1)[1] == p


class TestLayout:
    def test_eight_players_shape(self):
        slots = layout_single_elimination(_ids(8))
        rounds = _by_round(slots)
        assert [len(rounds[r]) for r in sorted(rounds)] == [4, 2, 1]
        assert all(s.status == MATCH_PENDING and not s.is_bye for s in slots)
        assert [(s.player1_id, s.player2_id) for s in rounds[0]] == [(101, 108), (104, 105), (103, 106), (102, 107)]

    def test_top_two_seeds_in_opposite_halves(self):
        for n in (4, 8, 16, 32):
            round0 = _by_round(layout_single_elimination(_ids(n)))[0]
            half = len(round0) // 2
            pos = {pid: s.position for s in round0 for pid in (s.player1_id, s.player2_id)}
            assert (pos[101] < half) != (pos[102] < half)

    def test_later_rounds_start_empty(self):
        slots = layout_single_elimination(_ids(8))
        for s in slots:
            if s.round_number > 0:
                assert s.player1_id is None and s.player2_id is None

    def test_byes_go_to_top_seeds_and_advance(self):
        slots = layout_single_elimination(_ids(5))
        rounds = _by_round(slots)
        byes = [s for s in rounds[0] if s.is_bye]
        assert sorted(s.winner_id for s in byes) == [101, 102, 103]
        for s in byes:
            assert s.status == MATCH_COMPLETED
            assert (s.player1_id is None) != (s.player2_id is None)

        # 1 waits for the 4v5 winner; 3 and 2 already meet in round 1
        r1 = rounds[1]
        assert (r1[0].player1_id, r1[0].player2_id) == (101, None)
        assert (r1[1].player1_id, r1[1].player2_id) == (103, 102)

    def test_three_players(self):
        rounds = _by_round(layout_single_elimination(_ids(3)))
        assert rounds[0][0].is_bye and rounds[0][0].winner_id == 101
        assert (rounds[0][1].player1_id, rounds[0][1].player2_id) == (102, 103)
        assert rounds[1][0].player1_id == 101

    def test_two_players_single_final(self):
        slots = layout_single_elimination(_ids(2))
        assert len(slots) == 1
        assert (slots[0].player1_id, slots[0].player2_id) == (101, 102)

    def test_never_bye_against_bye(self):
        for n in range(2, 33):
            for s in layout_single_elimination(_ids(n)):
                if s.round_number == 0:
                    assert s.player1_id is not None or s.player2_id is not None

    def test_too_few_players(self):
        with pytest.raises(BracketValidationError):
            layout_single_elimination([101])

    def test_duplicates_rejected(self):
        with pytest.raises(BracketValidationError):
            layout_single_elimination([101, 101, 102])
