from __future__ import annotations


class DomainValidationError(ValueError):
    """Raised when submitted game data breaks a table rule."""


class EntityNotFoundError(DomainValidationError):
    def __init__(self, kind: str, entity_id: object) -> None:
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class ScoreBalanceError(DomainValidationError):
    """Raw scores do not add up to the points in play at the table."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"raw scores must total {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class PointBalanceError(RuntimeError):
    """Settled points do not sum to zero; the ruleset or bonus input is inconsistent."""

    def __init__(self, total: float) -> None:
        super().__init__(f"points must sum to zero, got {total:.2f}")
        self.total = total


class SettlementInputError(ValueError):
    """Raised for a malformed settlement call, never for user input."""


class EntityConflictError(DomainValidationError):
    """The change would leave stored records inconsistent."""

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
