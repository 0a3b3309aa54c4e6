"""Error taxonomy shared by the store, the engines and the HTTP layer."""


class GameError(RuntimeError):
    """Base class for caller-visible game errors."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(GameError):
    """Raised when a referenced lobby, round, player or submission is absent."""
    status_code = 404


class ValidationError(GameError):
    """Raised when a required field is missing or malformed."""
    status_code = 400


class ConflictError(GameError):
    """Raised when a guarded write loses to the current state of the store."""
    status_code = 409


class StoreError(GameError):
    """Raised when the record store itself fails."""
    status_code = 503

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
