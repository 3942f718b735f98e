"""Exceptions raised by the job tracker."""


class JobTrackerError(Exception):
    """Base class for job tracker errors."""


class ConfigurationError(JobTrackerError):
    """Invalid run configuration."""


class FetchError(JobTrackerError):
    """Listing the mail source failed. Stops scheduling of new work."""


class ContentReadError(JobTrackerError):
    """Reading a message body failed."""


class ClassificationError(JobTrackerError):
    """The remote classifier call failed."""


class PersistenceError(JobTrackerError):
    """The record store rejected a write."""


class JobNotFoundError(JobTrackerError):
    """No job record exists for the given id or name."""


class PipelineCancelled(JobTrackerError):
    """The run was force-cancelled while an item was waiting."""
