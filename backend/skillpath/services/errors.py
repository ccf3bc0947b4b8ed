from __future__ import annotations


class NotFoundError(LookupError):
    """Entity is missing or belongs to another user."""

    def __init__(self, entity: str, ident: object | None = None) -> None:
        self.entity = entity
        self.ident = ident
        message = f"{entity} not found" if ident is None else f"{entity} {ident} not found"
        super().__init__(message)


class PreconditionFailedError(ValueError):
    pass


class InputValidationError(ValueError):
    pass
