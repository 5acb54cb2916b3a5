"""Errors raised by the spot engine.

The API layer maps these onto HTTP status codes; collaborator failures
(geocoder, landmark feed) never surface as one of these.
"""


class SpotError(Exception):
    """Base class for engine errors."""

    status_code = 400


class ValidationError(SpotError):
    """Malformed input: empty name, missing coordinates, empty comment."""

    status_code = 422


class NotFoundError(SpotError):
    """The referenced spot does not exist (or no longer exists)."""

    status_code = 404


class ConflictError(SpotError):
    """A vote kept colliding with concurrent writes after all retries."""

    status_code = 409


class AlreadyVotedError(ConflictError):
    """The user already voted and retracting/changing votes is disabled."""
