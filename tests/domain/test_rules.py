from types import SimpleNamespace

import pytest

from mahjong_league.domain import (
    DEFAULT_UMA,
    DomainValidationError,
    GameType,
    Ruleset,
    check_uma_balance,
    resolve_ruleset,
)


def _rule(**overrides):
    values = {
        "id": 7,
        "name": "Club rule",
        "game_type": "four_player",
        "starting_points": 30000,
        "return_points": 30000,
        "uma_first": 20,
        "uma_second": 10,
        "uma_third": -10,
        "uma_fourth": -20,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _league(**overrides):
    values = {
        "game_type": "four_player",
        "oka": 0,
        "rule": None,
        "starting_points": 25000,
        "return_points": 30000,
        "uma_first": 50,
        "uma_second": 10,
        "uma_third": -10,
        "uma_fourth": -50,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_defaults_per_game_type() -> None:
    four = Ruleset.default(GameType.FOUR_PLAYER)
    three = Ruleset.default("three_player")

    assert four.uma == (30, 10, -10, -30)
    assert four.oka_pool == 20
    assert four.expected_total_score == 100000
    assert three.uma == (30, 0, -30)
    assert three.oka_pool == 15
    assert three.expected_total_score == 75000


def test_short_uma_table_is_rejected() -> None:
    with pytest.raises(DomainValidationError, match="4 entries"):
        Ruleset(game_type=GameType.FOUR_PLAYER, uma=(30, 10, -10))


def test_unknown_game_type_is_rejected() -> None:
    with pytest.raises(DomainValidationError, match="unknown game type"):
        Ruleset(game_type="five_player", uma=(0, 0, 0, 0, 0))  # type: ignore[arg-type]


def test_no_league_no_rule_uses_defaults() -> None:
    assert resolve_ruleset(GameType.FOUR_PLAYER) == Ruleset.default(GameType.FOUR_PLAYER)


def test_league_fields_apply_without_a_rule() -> None:
    ruleset = resolve_ruleset("four_player", league=_league(oka=5))

    assert ruleset.uma == (50, 10, -10, -50)
    assert ruleset.oka == 5
    assert ruleset.rule_id is None


def test_league_rule_beats_league_fields() -> None:
    ruleset = resolve_ruleset(GameType.FOUR_PLAYER, league=_league(rule=_rule()))

    assert ruleset.uma == (20, 10, -10, -20)
    assert ruleset.starting_points == 30000
    assert ruleset.rule_id == 7
    assert ruleset.name == "Club rule"


def test_explicit_rule_beats_league_rule() -> None:
    league = _league(rule=_rule(), oka=3)
    chosen = _rule(id=9, name="Chosen", uma_first=40, uma_fourth=-40)

    ruleset = resolve_ruleset(GameType.FOUR_PLAYER, league=league, rule=chosen)

    assert ruleset.rule_id == 9
    assert ruleset.uma == (40, 10, -10, -40)
    assert ruleset.oka == 3


def test_missing_fourth_uma_falls_back() -> None:
    ruleset = resolve_ruleset(GameType.FOUR_PLAYER, rule=_rule(uma_fourth=None))
    assert ruleset.uma[-1] == -30


def test_three_player_rule_ignores_fourth_slot() -> None:
    rule = _rule(game_type="three_player", starting_points=35000, return_points=40000, uma_second=0, uma_third=-20)

    ruleset = resolve_ruleset(GameType.THREE_PLAYER, rule=rule)

    assert ruleset.uma == (20, 0, -20)
    assert ruleset.oka_pool == 15


def test_mismatched_game_types_are_rejected() -> None:
    with pytest.raises(DomainValidationError, match="league plays"):
        resolve_ruleset(GameType.THREE_PLAYER, league=_league())
    with pytest.raises(DomainValidationError, match="is for"):
        resolve_ruleset(GameType.THREE_PLAYER, rule=_rule())


def test_uma_balance() -> None:
    check_uma_balance((30, 10, -10, -30))
    check_uma_balance(DEFAULT_UMA[GameType.THREE_PLAYER])
    with pytest.raises(DomainValidationError, match="sum to zero, got 10"):
        check_uma_balance((30, 10, -10, -20))
