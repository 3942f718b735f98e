"""Data models shared by the mail source, classifier, record store and pipeline."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class Status(str, Enum):
    """Job application status assigned by the classifier."""

    INTERVIEW = "INTERVIEW"
    REJECTED = "REJECTED"
    WAITING = "WAITING"


@dataclass(frozen=True)
class MessageSummary:
    """Opaque reference to a single unread message."""

    id: str


@dataclass(frozen=True)
class MessageContent:
    """Plain-text body of one message."""

    message_id: str
    text: str


@dataclass(frozen=True)
class ClassificationResult:
    """Company and status extracted from a classifier response."""

    company: str
    status: Status


@dataclass
class JobRecord:
    """A tracked job application, unique by name."""

    id: Optional[int]
    name: str
    status: Status


class OutcomeKind(str, Enum):
    """Terminal state of one item's pipeline."""

    CREATED = "created"
    UPDATED = "updated"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineOutcome:
    """Result of running one message through the pipeline."""

    kind: OutcomeKind
    message_id: Optional[str] = None
    reason: Optional[str] = None
    company: Optional[str] = None

    @classmethod
    def created(cls, company: str, message_id: Optional[str] = None) -> "PipelineOutcome":
        return cls(kind=OutcomeKind.CREATED, message_id=message_id, company=company)

    @classmethod
    def updated(cls, company: str, message_id: Optional[str] = None) -> "PipelineOutcome":
        return cls(kind=OutcomeKind.UPDATED, message_id=message_id, company=company)

    @classmethod
    def ignored(
        cls, message_id: Optional[str] = None, reason: Optional[str] = None
    ) -> "PipelineOutcome":
        return cls(kind=OutcomeKind.IGNORED, message_id=message_id, reason=reason)

    @classmethod
    def failed(cls, reason: str, message_id: Optional[str] = None) -> "PipelineOutcome":
        return cls(kind=OutcomeKind.FAILED, message_id=message_id, reason=reason)

    def for_message(self, message_id: str) -> "PipelineOutcome":
        """Return a copy tagged with the message it belongs to."""
        return replace(self, message_id=message_id)
