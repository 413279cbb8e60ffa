"""
Error taxonomy for the pod cleanup controller.

Spec errors (schedule, selector) are recovered into policy status by the
reconciler. Store errors are scoped to the namespace or pod they affect.
Only status persistence failures escalate to the caller.
"""


class PodCleanupError(Exception):
    """Base class for all controller errors."""
    pass


class InvalidScheduleError(PodCleanupError):
    """Raised when a cron schedule cannot be parsed."""

    def __init__(self, schedule: str, detail: str) -> None:
        self.schedule = schedule
        self.detail = detail
        super().__init__(f'Cannot parse cron schedule "{schedule}": {detail}')


class InvalidSelectorError(PodCleanupError):
    """Raised when a label selector is malformed."""
    pass


class ObjectNotFoundError(PodCleanupError):
    """Raised when the object store has no such object."""
    pass


class TransientStoreError(PodCleanupError):
    """Raised when an object store call fails for infrastructure reasons."""
    pass


class StatusPersistError(PodCleanupError):
    """Raised when a policy status update cannot be written."""
    pass
