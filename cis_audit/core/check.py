"""Check Module - Defines the check model and the base class for check procedures."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

from .exceptions import CheckDataError, CheckSkipped

if TYPE_CHECKING:
    from .config import RunRequest
    from .host import HostProbe
    from .progress import ProgressTracker

logger = logging.getLogger(__name__)


class ScoringClass(Enum):
    """Whether a check counts toward the benchmark score."""
    SCORED = "Scored"
    NOT_SCORED = "Not Scored"
    SKIPPED = "Skipped"


class Outcome(Enum):
    """Result of a check. NONE is used by skipped checks."""
    PASS = "Pass"
    FAIL = "Fail"
    ERROR = "Error"
    NONE = ""

    @property
    def color(self) -> str:
        """Get terminal color for the outcome."""
        colors = {
            Outcome.PASS: "green",
            Outcome.FAIL: "red",
            Outcome.ERROR: "yellow",
            Outcome.NONE: "dim",
        }
        return colors[self]


@dataclass(frozen=True)
class Section:
    """Banner row grouping the checks below it, e.g. ("1.1", "Filesystem Configuration")."""
    id: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert section to dictionary."""
        return {"id": self.id, "title": self.title}


@dataclass(frozen=True)
class CheckSpec:
    """A catalog entry: one benchmark item and the procedure that audits it."""
    id: str
    level: int
    scoring_class: ScoringClass
    description: str
    procedure: "BaseCheck"

    def to_dict(self) -> Dict[str, Any]:
        """Convert spec to dictionary."""
        return {
            "id": self.id,
            "level": self.level,
            "scoring_class": self.scoring_class.value,
            "description": self.description,
            "procedure": type(self.procedure).__name__,
        }


@dataclass(frozen=True)
class ResultRecord:
    """The single, immutable result of one executed check."""
    id: str
    description: str
    scoring_class: ScoringClass
    level: int
    outcome: Outcome
    duration_ms: int = 0
    message: str = ""

    @property
    def skipped(self) -> bool:
        return self.scoring_class == ScoringClass.SKIPPED

    @property
    def label(self) -> str:
        """Result column text: Pass, Fail, Error or Skipped."""
        if self.skipped:
            return ScoringClass.SKIPPED.value
        return self.outcome.value

    @property
    def duration_text(self) -> str:
        return f"{self.duration_ms}ms"

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary."""
        return {
            "id": self.id,
            "description": self.description,
            "scoring_class": self.scoring_class.value,
            "level": self.level,
            "outcome": self.outcome.value,
            "result": self.label,
            "duration_ms": self.duration_ms,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultRecord":
        """Create record from dictionary."""
        return cls(
            id=data["id"],
            description=data["description"],
            scoring_class=ScoringClass(data["scoring_class"]),
            level=data["level"],
            outcome=Outcome(data["outcome"]),
            duration_ms=data.get("duration_ms", 0),
            message=data.get("message", ""),
        )


@dataclass
class Finding:
    """What an inspection concluded. Fail unless explicitly marked passed."""
    passed: bool = False
    message: str = ""


@dataclass
class CheckContext:
    """Shared, read-mostly services handed to every check."""
    host: "HostProbe"
    tracker: "ProgressTracker"
    request: Optional["RunRequest"] = None


InspectionResult = Union[Finding, bool, None]


class BaseCheck(ABC):
    """Abstract base class for all check procedures.

    Subclasses implement inspect(). Parameters (package names, paths,
    expected values) are bound in the constructor when the catalog is built.
    """

    # Host binaries the inspection calls
    tools: Tuple[str, ...] = ()

    @abstractmethod
    async def inspect(self, host: "HostProbe") -> InspectionResult:
        """Examine the host.

        Args:
            host: Query primitives for the audited system

        Returns:
            Finding, or True for a pass. Anything else is a fail.

        Raises:
            CheckSkipped: The precondition for this check does not hold
            CheckDataError: Host data could not be interpreted
        """
        pass

    async def run(self, spec: CheckSpec, context: CheckContext) -> ResultRecord:
        """Execute the check and build its result record.

        Brackets the inspection with tracker start/finish calls. The outcome
        defaults to Fail and only becomes Pass when the inspection says so.

        Args:
            spec: Catalog entry being executed
            context: Host probe and progress tracker

        Returns:
            ResultRecord for this check
        """
        context.tracker.on_start(spec.id)
        scoring_class = spec.scoring_class
        outcome = Outcome.FAIL
        message = ""

        try:
            finding = self._as_finding(await self.inspect(context.host))
            message = finding.message
            if finding.passed:
                outcome = Outcome.PASS
        except CheckSkipped as e:
            scoring_class = ScoringClass.SKIPPED
            outcome = Outcome.NONE
            message = str(e)
        except CheckDataError as e:
            outcome = Outcome.ERROR
            message = str(e)
            logger.warning("Test %s could not interpret host data: %s", spec.id, e)
        finally:
            duration_ms = context.tracker.on_finish(spec.id)

        return ResultRecord(
            id=spec.id,
            description=spec.description,
            scoring_class=scoring_class,
            level=spec.level,
            outcome=outcome,
            duration_ms=duration_ms,
            message=message,
        )

    @staticmethod
    def _as_finding(result: InspectionResult) -> Finding:
        if isinstance(result, Finding):
            return result
        return Finding(passed=result is True)

    def describe(self) -> str:
        """Default description used when the catalog does not give one."""
        return type(self).__name__
