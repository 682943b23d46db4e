"""
Exceptions raised by the game handlers.

Routes translate these into HTTP responses; the worker records them on the
failing job.
"""


class RockmundoError(Exception):
    """Base class for domain errors."""


class NotFoundError(RockmundoError):
    """A referenced record does not exist."""


class ForbiddenError(RockmundoError):
    """The caller may not act on the record."""


class InvalidStateError(RockmundoError):
    """The record is not in a state that allows the operation."""


class ConflictError(RockmundoError):
    """The operation collides with existing state (double settlement, exclusivity)."""


class SettlementError(InvalidStateError):
    """A gig or festival cannot be settled from its current data."""
