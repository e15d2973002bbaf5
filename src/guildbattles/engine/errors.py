from __future__ import annotations


class GameError(RuntimeError):
    pass


class ConfigError(GameError):
    """Bad setup parameters. Fatal to match creation."""


class SetupError(GameError):
    """The deck cannot supply the cards a deal requires."""


class ValidationError(GameError):
    """An illegal intent. The match state is left untouched."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class StateConsistencyError(GameError):
    """An internal invariant is broken. Indicates a bug in the engine."""
