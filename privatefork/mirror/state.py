"""
Fork State - In-memory bookkeeping for one fork workflow.

Nothing here is persisted; a workflow's state lives for one call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..models.github import RepositoryRef

if TYPE_CHECKING:
    from .manager import ForkError


class ForkStep(str, Enum):
    """Workflow steps, in execution order."""
    PARSE_URL = "parse_url"
    VALIDATE_PATH = "validate_path"
    VALIDATE_CREDENTIALS = "validate_credentials"
    CREATE_REPOSITORY = "create_repository"
    CLONE = "clone"
    CONFIGURE_REMOTE = "configure_remote"
    PUSH_BRANCHES = "push_branches"
    PUSH_TAGS = "push_tags"
    CLEANUP = "cleanup"


class EventLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class StageEvent:
    """One progress message emitted during the workflow."""

    step: ForkStep
    message: str
    level: EventLevel = EventLevel.INFO
    ts_iso: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "message": self.message,
            "level": self.level.value,
            "ts": self.ts_iso,
        }


@dataclass
class ForkWorkflowState:
    """Which step last completed, and the repository to undo if any."""

    last_completed: Optional[ForkStep] = None
    created_repository: Optional[RepositoryRef] = None

    def complete(self, step: ForkStep) -> None:
        self.last_completed = step

    def record_repository(self, repository: RepositoryRef) -> None:
        self.created_repository = repository
        self.complete(ForkStep.CREATE_REPOSITORY)

    @property
    def needs_compensation(self) -> bool:
        return self.created_repository is not None


@dataclass(frozen=True)
class CleanupOutcome:
    """What happened when the created repository was deleted after a failure."""

    repository: RepositoryRef
    deleted: bool
    error: Optional[str] = None


@dataclass
class ForkResult:
    """
    Outcome of create_private_fork().

    The orchestrator never raises; failures land in ``error`` and, when a
    repository had to be rolled back, ``cleanup``.
    """

    ok: bool
    message: str
    repository: Optional[RepositoryRef] = None
    error: Optional["ForkError"] = None
    cleanup: Optional[CleanupOutcome] = None
    events: List[StageEvent] = field(default_factory=list)

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.events]
