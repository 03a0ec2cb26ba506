"""Structured exceptions raised by the lobby services."""

from typing import Any, Dict


class LobbyError(Exception):
    """Base class for lobby-level failures surfaced to callers."""

    http_status = 400

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {'type': self.__class__.__name__, 'error': str(self)}


class ValidationError(LobbyError):
    """Raised when a code, name or settings payload is malformed."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload['field'] = self.field
        return payload


class NotFound(LobbyError):
    """Raised when no live lobby exists for a code."""

    http_status = 404

    def __init__(self, code: str):
        self.code = code
        super().__init__('Lobby not found')


class GameInProgress(LobbyError):
    """Raised when joining a lobby whose round has already started."""

    http_status = 409

    def __init__(self, code: str):
        self.code = code
        super().__init__('Game already in progress')


class NameTaken(LobbyError):
    http_status = 409

    def __init__(self, name: str):
        self.name = name
        super().__init__('Name already taken in this lobby')


class ParticipantNotFound(LobbyError):
    """Raised when a viewer id is not in the lobby's roster."""

    http_status = 404

    def __init__(self, player_id: str):
        self.player_id = player_id
        super().__init__('Player not found in lobby')


class GenerationExhausted(LobbyError):
    """Raised when no unused lobby code could be found."""

    http_status = 503

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f'Could not allocate a lobby code after {attempts} attempts')


class RepositoryUnavailable(LobbyError):
    """Raised when the lobby store fails or times out. Retryable by the caller."""

    http_status = 503

    def to_dict(self) -> Dict[str, Any]:
        # Internal detail stays in the logs
        return {'type': 'RepositoryUnavailable', 'error': 'Service temporarily unavailable, please retry'}


class WriteConflict(RepositoryUnavailable):
    """Raised when a conditional write kept losing to concurrent writers."""

    def __init__(self, code: str, attempts: int):
        self.code = code
        self.attempts = attempts
        super().__init__(f'Lobby {code} changed concurrently {attempts} times in a row')
