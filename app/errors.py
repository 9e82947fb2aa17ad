"""Typed errors raised by the workshop timer core"""


class TimerError(Exception):
    """Base class for all timer errors"""
    status_code = 500


class NotFoundError(TimerError):
    """Referenced workshop, session or timer state does not exist"""
    status_code = 404


class InvalidStateError(TimerError):
    """Operation is not allowed for the current timer status"""
    status_code = 409


class InvalidArgumentError(TimerError):
    """Request argument is out of range (e.g. non-positive extension)"""
    status_code = 422


class TransientError(TimerError):
    """Network or backing-store failure; the caller may reload and try again"""
    status_code = 503
