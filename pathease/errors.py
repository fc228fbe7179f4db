"""Exceptions raised by PathEase components."""


class PathEaseError(Exception):
    """Base class for all PathEase errors"""


class PermissionDeniedError(PathEaseError):
    """Location access was refused or the platform has no location provider"""


class EmptyItineraryError(PathEaseError):
    """Navigation was requested for an itinerary with no stops"""


class InvalidSelectionError(PathEaseError, ValueError):
    """A day or stop index outside the selected itinerary"""


class PartnerLocationUnavailable(PathEaseError):
    """The backend has no live location for the requested partner"""


class AnnouncementUnsupported(PathEaseError):
    """No speech synthesis is available on this platform"""


class SpeechInputUnsupported(PathEaseError):
    """No speech recognition is available on this platform"""


class ApiError(PathEaseError):
    """The backend answered with a non-success status"""

    def __init__(self, message: str, status_code: int = None, path: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.path = path


class PlanningError(PathEaseError, ValueError):
    """Trip planner parameters are incomplete"""
