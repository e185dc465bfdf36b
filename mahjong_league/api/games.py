from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError

from mahjong_league.api.dependencies import get_game_service
from mahjong_league.api.errors import api_error, domain_error
from mahjong_league.api.schemas import (
    GameCreateRequest,
    GamePreviewRequest,
    GamePreviewResponse,
    GameResponse,
    PlayerResultResponse,
    RulesetResponse,
)
from mahjong_league.domain import (
    DomainValidationError,
    GameSettlement,
    GameType,
    PointBalanceError,
)
from mahjong_league.services.game_service import GameService
from mahjong_league.storage.models import Game

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])


def _preview_response(settlement: GameSettlement) -> GamePreviewResponse:
    return GamePreviewResponse(
        ruleset=RulesetResponse.from_ruleset(settlement.ruleset),
        results=[PlayerResultResponse.model_validate(result) for result in settlement.results],
        total_points=settlement.total_points,
    )


def _game_response(game: Game) -> GameResponse:
    game_type = GameType(game.game_type)
    uma = [game.applied_uma_first, game.applied_uma_second, game.applied_uma_third, game.applied_uma_fourth]
    return GameResponse(
        id=game.id,
        game_type=game_type,
        league_id=game.league_id,
        created_by=game.created_by,
        played_at=game.played_at,
        ruleset=RulesetResponse(
            game_type=game_type,
            uma=uma[: game_type.player_count],
            oka=game.applied_oka,
            starting_points=game.applied_starting_points,
            return_points=game.applied_return_points,
            rule_id=game.applied_rule_id,
            name=game.applied_rule_name,
        ),
        results=[
            PlayerResultResponse.model_validate(result)
            for result in sorted(game.results, key=lambda result: (result.seat_index, result.id))
        ],
    )


@router.post("/preview", response_model=GamePreviewResponse, summary="Settle a table without saving it")
def preview_game(payload: GamePreviewRequest, service: GameService = Depends(get_game_service)) -> GamePreviewResponse:
    try:
        settlement = service.preview(
            payload.game_type,
            [seat.to_domain() for seat in payload.seats],
            league_id=payload.league_id,
            rule_id=payload.rule_id,
        )
    except (DomainValidationError, PointBalanceError) as exc:
        raise domain_error(exc) from exc
    return _preview_response(settlement)


@router.post(
    "",
    response_model=GameResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a finished game",
)
def create_game(payload: GameCreateRequest, service: GameService = Depends(get_game_service)) -> GameResponse:
    try:
        game_id, _ = service.record_game(
            payload.game_type,
            [seat.to_domain() for seat in payload.seats],
            created_by=payload.created_by,
            league_id=payload.league_id,
            rule_id=payload.rule_id,
            played_at=payload.played_at,
        )
    except DomainValidationError as exc:
        logger.info("rejected game from %s: %s", payload.created_by, exc)
        raise domain_error(exc) from exc
    except PointBalanceError as exc:
        logger.error("point balance check failed for game from %s: %s", payload.created_by, exc)
        raise domain_error(exc) from exc
    except SQLAlchemyError as exc:
        logger.exception("failed to save game from %s", payload.created_by)
        raise api_error(
            code="save_failed",
            message="game could not be saved, submit it again",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        ) from exc

    return _game_response(service.get_game(game_id))


@router.get("/{id}", response_model=GameResponse, summary="Read a recorded game")
def get_game(id: int, service: GameService = Depends(get_game_service)) -> GameResponse:
    try:
        game = service.get_game(id)
    except DomainValidationError as exc:
        raise domain_error(exc) from exc
    return _game_response(game)


@router.get("", response_model=list[GameResponse], summary="List recorded games, newest first")
def list_games(
    user_id: str | None = None,
    league_id: int | None = None,
    limit: int = Query(50, ge=1, le=200),
    service: GameService = Depends(get_game_service),
) -> list[GameResponse]:
    return [_game_response(game) for game in service.list_games(user_id=user_id, league_id=league_id, limit=limit)]


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a recorded game")
def delete_game(id: int, service: GameService = Depends(get_game_service)) -> Response:
    try:
        service.delete_game(id)
    except DomainValidationError as exc:
        raise domain_error(exc) from exc
    except SQLAlchemyError as exc:
        logger.exception("failed to delete game %s", id)
        raise api_error(
            code="delete_failed",
            message="game could not be deleted, try again",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        ) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
