"""Domain errors raised by the progress services and repositories.

Routers translate these to HTTP responses.  "Already completed" and "no
next topic" are normal outcomes and have no exception here.
"""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for unlock/progress state machine errors."""


class NoTopicsError(ProgressError):
    """The course has no topics, so there is nothing to unlock yet."""


class NotAccessibleError(ProgressError):
    """The topic was never unlocked for this student."""


class TopicNotFoundError(ProgressError):
    """The topic does not exist within the given course."""


class TopicNotCompletedError(ProgressError):
    """Advancing past a topic the student has not completed."""


class StoreUnavailableError(ProgressError):
    """The backing store failed or timed out.  Callers may retry."""


class CourseNotFoundError(LookupError):
    pass


class EnrollmentNotFoundError(LookupError):
    pass


class EnrollmentRevokedError(Exception):
    pass


class RequestNotFoundError(LookupError):
    pass


class RequestAlreadyProcessedError(Exception):
    pass


class TestNotFoundError(LookupError):
    __test__ = False


class StudentAlreadyExistsError(Exception):
    pass


class DuplicateOrderIndexError(ValueError):
    pass


class EnrollmentValidationError(ValueError):
    pass


class GradingValidationError(ValueError):
    pass
