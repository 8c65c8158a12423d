import pytest

from services.scoring_service import compute_scavenger_points, compute_trivia_points, round_half_up


class TestTriviaPoints:
    @pytest.mark.parametrize("elapsed_ms", [0, 1000, 30000, 90000])
    def test_wrong_answer_scores_zero(self, elapsed_ms):
        assert compute_trivia_points(False, 100, 30, elapsed_ms, True) == 0
        assert compute_trivia_points(False, 100, 30, elapsed_ms, False) == 0

    @pytest.mark.parametrize("elapsed_ms", [0, 15000, 30000, 60000])
    def test_no_scaling_gives_base_points(self, elapsed_ms):
        assert compute_trivia_points(True, 100, 30, elapsed_ms, False) == 100

    def test_documented_values(self):
        assert compute_trivia_points(True, 100, 30, 0, True) == 100
        assert compute_trivia_points(True, 100, 30, 15000, True) == 75
        assert compute_trivia_points(True, 100, 30, 30000, True) == 50

    def test_after_time_limit_is_floor(self):
        assert compute_trivia_points(True, 100, 30, 45000, True) == 50

    def test_monotonic_and_bounded(self):
        previous = None
        for elapsed_ms in range(0, 40001, 250):
            points = compute_trivia_points(True, 137, 30, elapsed_ms, True)
            assert round_half_up(137 * 0.5) <= points <= 137
            if previous is not None:
                assert points <= previous
            previous = points

    def test_rounds_half_up(self):
        # 0.5 + 0.5 * (1 - 0.5) = 0.75 -> 7.5 -> 8
        assert compute_trivia_points(True, 10, 30, 15000, True) == 8
        assert round_half_up(2.5) == 3


class TestScavengerPoints:
    def test_tiers(self):
        assert compute_scavenger_points(None, False, 10, 5, 2) == 0
        assert compute_scavenger_points(False, False, 10, 5, 2) == 2
        assert compute_scavenger_points(True, True, 10, 5, 2) == 10
        assert compute_scavenger_points(True, False, 10, 5, 2) == 5

    def test_defaults(self):
        assert compute_scavenger_points(True, True) == 10
        assert compute_scavenger_points(True, False) == 5
        assert compute_scavenger_points(False, False) == 2
