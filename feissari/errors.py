"""Game error taxonomy.

Each error carries the HTTP status the routes answer with. The state machine
raises them; the routes turn them into HTTPException.
"""


class GameError(Exception):
    status_code = 500


class BadRequest(GameError):
    """Malformed caller input. Raised before any state is written."""

    status_code = 400


class NotFound(GameError):
    """A session, character or player reference does not resolve."""

    status_code = 404


class Gone(GameError):
    """The session has already ended."""

    status_code = 410


class ServiceUnavailable(GameError):
    """A backing dependency is not configured or reachable. Safe to retry."""

    status_code = 503


class InternalError(GameError):
    """Unexpected failure after validation passed."""

    status_code = 500
