from __future__ import annotations

from types import SimpleNamespace

from fastapi import APIRouter, Depends, Response, status

from mahjong_league.api.dependencies import get_repository
from mahjong_league.api.errors import api_error, domain_error
from mahjong_league.api.schemas import RuleCreateRequest, RuleResponse, RuleUpdateRequest
from mahjong_league.domain import (
    DomainValidationError,
    EntityConflictError,
    GameType,
    check_uma_balance,
    resolve_ruleset,
)
from mahjong_league.domain.rules import uma_from_row
from mahjong_league.storage.models import Rule
from mahjong_league.storage.repository import MahjongRepository

router = APIRouter(prefix="/rules", tags=["rules"])

UMA_COLUMNS = ("uma_first", "uma_second", "uma_third", "uma_fourth")


def rule_response(rule: Rule) -> RuleResponse:
    ruleset = resolve_ruleset(rule.game_type, rule=rule)
    return RuleResponse(
        id=rule.id,
        name=rule.name,
        game_type=ruleset.game_type,
        starting_points=ruleset.starting_points,
        return_points=ruleset.return_points,
        uma=list(ruleset.uma),
        oka_pool=ruleset.oka_pool,
    )


def _rule_or_404(repo: MahjongRepository, id: int) -> Rule:
    rule = repo.get_rule(id)
    if rule is None:
        raise api_error(
            code="rule_not_found",
            message=f"rule {id} not found",
            details={"id": id},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return rule


@router.post("", response_model=RuleResponse, status_code=status.HTTP_201_CREATED, summary="Create a rule")
def create_rule(payload: RuleCreateRequest, repo: MahjongRepository = Depends(get_repository)) -> RuleResponse:
    try:
        check_uma_balance(uma_from_row(payload, payload.game_type))
    except DomainValidationError as exc:
        raise domain_error(exc) from exc

    values = payload.model_dump()
    values["game_type"] = payload.game_type.value
    return rule_response(repo.create_rule(**values))


@router.get("", response_model=list[RuleResponse], summary="List rules")
def list_rules(
    game_type: GameType | None = None,
    repo: MahjongRepository = Depends(get_repository),
) -> list[RuleResponse]:
    return [rule_response(rule) for rule in repo.list_rules(game_type)]


@router.get("/{id}", response_model=RuleResponse, summary="Read a rule")
def get_rule(id: int, repo: MahjongRepository = Depends(get_repository)) -> RuleResponse:
    return rule_response(_rule_or_404(repo, id))


@router.patch("/{id}", response_model=RuleResponse, summary="Update a rule")
def update_rule(
    id: int,
    payload: RuleUpdateRequest,
    repo: MahjongRepository = Depends(get_repository),
) -> RuleResponse:
    rule = _rule_or_404(repo, id)
    game_type = GameType(rule.game_type)
    values = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    if game_type is GameType.THREE_PLAYER:
        values.pop("uma_fourth", None)

    merged = SimpleNamespace(**{column: values.get(column, getattr(rule, column)) for column in UMA_COLUMNS})
    try:
        check_uma_balance(uma_from_row(merged, game_type))
    except DomainValidationError as exc:
        raise domain_error(exc) from exc

    # stored games keep the ruleset they were settled with
    return rule_response(repo.update_rule(rule, **values))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a rule")
def delete_rule(id: int, repo: MahjongRepository = Depends(get_repository)) -> Response:
    rule = _rule_or_404(repo, id)
    league_ids = repo.leagues_using_rule(id)
    if league_ids:
        raise domain_error(
            EntityConflictError(
                "rule_in_use",
                f"rule {id} is used by {len(league_ids)} league(s)",
                {"id": id, "league_ids": league_ids},
            )
        )
    repo.delete_rule(rule)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
