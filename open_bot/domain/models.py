import logging
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

logger = logging.getLogger(__name__)


class Repository(BaseModel):
    """
    Immutable domain model representing a GitHub repository.
    Shared read-only by every triple derived from it.
    """
    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Login name of the repository owner")
    name: str = Field(..., description="Name of the repository")
    full_name: str = Field(..., description="owner/name")
    default_branch: Optional[str] = Field(default=None, description="Branch the settings file is read from")
    raw: Dict[str, Any] = Field(default_factory=dict, description="Raw REST payload for rule engines")


class IssueWorkItem(BaseModel):
    """An issue that has already been fetched, together with its repository."""
    model_config = ConfigDict(frozen=True)

    type: Literal["issue"] = "issue"
    repo: Repository
    number: int
    full_name: str = Field(..., description="owner/repo#number")
    data: Dict[str, Any] = Field(default_factory=dict, description="Raw REST issue payload")


class RepoWorkItem(BaseModel):
    """A repository whose open issues still have to be enumerated."""
    model_config = ConfigDict(frozen=True)

    type: Literal["repo"] = "repo"
    repo: Repository
    full_name: str


class ReportEvent(BaseModel):
    """
    Progress notice handed to a reporter.

    Lifecycle events carry ``action`` and ``change`` (queued, start, done),
    skip notices carry only ``action`` and failures carry ``error`` and ``stack``.
    """
    model_config = ConfigDict(frozen=True)

    item: str
    action: Optional[str] = None
    change: Optional[str] = None
    error: Optional[str] = None
    stack: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


Reporter = Callable[[ReportEvent], None]
RuleEngine = Callable[["RepoConfig", "RunContext", Any], Awaitable[None]]


class RunContext(BaseModel):
    """Context handed to the rule engine for one issue."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    owner: str
    repo: str
    item: str
    github: Any
    bot_username: str
    data: Dict[str, Any] = Field(default_factory=dict)
    reporter: Reporter
    simulate: bool = False


async def noop_rule_engine(config: "RepoConfig", context: RunContext, issue: Any) -> None:
    item = getattr(context, "item", None) or getattr(issue, "full_name", "<unknown>")
    logger.info(f"{item}: {len(config.rules)} rule(s), no rule engine configured")


class RepoConfig(BaseModel):
    """
    Parsed and validated ``open-bot.yaml`` of one repository.

    Only ``bot`` is interpreted here; everything else belongs to the rule engine.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    bot: str = Field(..., min_length=1, description="Bot account this configuration is meant for")
    rules: List[Any] = Field(default_factory=list, description="Opaque to the bot; read by the rule engine")

    _engine: RuleEngine = PrivateAttr(default=noop_rule_engine)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], engine: Optional[RuleEngine] = None) -> "RepoConfig":
        config = cls.model_validate(settings)
        if engine is not None:
            config._engine = engine
        return config

    async def run(self, context: RunContext, issue: Any) -> None:
        await self._engine(self, context, issue)


class ProcessingTriple(BaseModel):
    """Unit of work of the processing stage."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    config: RepoConfig
    repo: Repository
    issue: Dict[str, Any]

    @property
    def full_name(self) -> str:
        return f"{self.repo.full_name}#{self.issue.get('number')}"
