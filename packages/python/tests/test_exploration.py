import pytest

from watchlyst_scoring.exploration import exploration_rate


def test_new_users_explore_more():
    assert exploration_rate(5, 0.5, 0.15) > exploration_rate(100, 0.5, 0.15)


def test_balanced_mature_user_gets_base_rate():
    assert exploration_rate(50, 0.5, 0.15) == pytest.approx(0.15)
    assert exploration_rate(500, 0.5, 0.15) == pytest.approx(0.15)


def test_new_user_bonus_fades_linearly():
    assert exploration_rate(0, 0.5, 0.15) == pytest.approx(0.25)
    assert exploration_rate(25, 0.5, 0.15) == pytest.approx(0.20)


def test_lopsided_like_ratio_adds_exploration():
    assert exploration_rate(100, 0.9, 0.15) == pytest.approx(0.15 + 0.4 * 0.2)
    assert exploration_rate(100, 0.1, 0.15) == pytest.approx(exploration_rate(100, 0.9, 0.15))


@pytest.mark.parametrize("total, ratio, base", [(0, 1.0, 0.15), (0, 0.0, 0.3), (10, 1.0, 0.5)])
def test_rate_is_capped(total, ratio, base):
    assert exploration_rate(total, ratio, base) == 0.3
