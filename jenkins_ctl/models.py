# models.py

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ParameterMode(str, Enum):
    NONE = "none"          # plain build, no parameters
    DEFAULTS = "defaults"  # buildWithParameters using the job's defaults
    EXPLICIT = "explicit"  # buildWithParameters with the given values


class ParameterSet(BaseModel):
    mode: ParameterMode = ParameterMode.NONE
    values: Dict[str, str] = {}

    @property
    def use_defaults(self) -> bool:
        return self.mode == ParameterMode.DEFAULTS


class BuildRequest(BaseModel):
    job: str
    parameters: ParameterSet = Field(default_factory=ParameterSet)
    stream: bool = False


class QueueItem(BaseModel):
    id: int
    url: Optional[str] = None


class QueueState(str, Enum):
    QUEUED = "QUEUED"
    CANCELLED = "CANCELLED"
    ASSIGNED = "ASSIGNED"


class QueueStatus(BaseModel):
    state: QueueState
    build_number: Optional[int] = None
    why: Optional[str] = None


class BuildHandle(BaseModel):
    """Durable reference to one build of a job."""
    model_config = ConfigDict(frozen=True)

    job: str
    number: int = Field(gt=0)

    def __str__(self) -> str:
        return f"{self.job} #{self.number}"


class ConsoleChunk(BaseModel):
    """One response of the progressive console endpoint."""
    data: bytes = b""
    next_offset: int = 0
    more_data: bool = False


class ConsoleCursor(BaseModel):
    handle: BuildHandle
    offset: int = Field(default=0, ge=0)
    more_data: bool = True


class BuildOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNSTABLE = "UNSTABLE"
    ABORTED = "ABORTED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_result(cls, result: Optional[str]) -> "BuildOutcome":
        """Map a Jenkins ``result`` field (e.g. ``NOT_BUILT`` or None) to an outcome."""
        try:
            return cls(str(result).upper())
        except ValueError:
            return cls.UNKNOWN


class BuildStatus(BaseModel):
    building: bool = False
    result: Optional[str] = None

    @property
    def outcome(self) -> BuildOutcome:
        if self.building:
            return BuildOutcome.UNKNOWN
        return BuildOutcome.from_result(self.result)


class BuildResult(BaseModel):
    """Terminal result of a trigger: outcome plus the console offset reached."""
    handle: Optional[BuildHandle] = None
    outcome: BuildOutcome = BuildOutcome.UNKNOWN
    offset: Optional[int] = None


class InterruptSeverity(int, Enum):
    """Ordered by destructiveness; the value is the rank."""
    STOP = 1
    TERM = 2
    KILL = 3

    @property
    def endpoint(self) -> str:
        return self.name.lower()


class InterruptAck(BaseModel):
    handle: BuildHandle
    severity: InterruptSeverity
    status_code: int


# Server payloads

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JobEntry(_CamelModel):
    name: str
    full_name: Optional[str] = Field(default=None, alias="fullName")
    item_class: str = Field(default="", alias="_class")
    url: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        item_class = self.item_class.lower()
        return "folder" in item_class or "multibranch" in item_class


class JobTreeItem(BaseModel):
    name: str
    full_name: str
    type: str  # "job" or "folder"
    depth: int = 0


class BuildEntry(_CamelModel):
    number: int
    url: Optional[str] = None


class BuildList(_CamelModel):
    builds: List[BuildEntry] = []
    next_build_number: Optional[int] = Field(default=None, alias="nextBuildNumber")


class BuildParameter(_CamelModel):
    name: str
    value: Any = None


class Computer(_CamelModel):
    display_name: str = Field(alias="displayName")
    offline: bool = False
    temporarily_offline: bool = Field(default=False, alias="temporarilyOffline")
    idle: bool = True
    num_executors: int = Field(default=0, alias="numExecutors")
    offline_cause_reason: Optional[str] = Field(default=None, alias="offlineCauseReason")


class NodesInfo(_CamelModel):
    busy_executors: int = Field(default=0, alias="busyExecutors")
    total_executors: int = Field(default=0, alias="totalExecutors")
    computer: List[Computer] = []
