import logging
import traceback
from typing import Any, Dict, List, Optional, Sequence, Union

from open_bot.application.config_loader import ConfigLoader
from open_bot.application.issue_facade import IssueFacade
from open_bot.application.reporting import noop_reporter
from open_bot.application.work_queue import CONCURRENCY_LIMIT, BoundedWorkQueue, queue_all
from open_bot.domain.exceptions import BotUserMismatchError
from open_bot.domain.models import (
    IssueWorkItem,
    ProcessingTriple,
    RepoConfig,
    RepoWorkItem,
    Reporter,
    ReportEvent,
    Repository,
    RunContext,
)
from open_bot.infrastructure.acl import GitHubTranslator

logger = logging.getLogger(__name__)

FETCH_ACTION = "fetch config and issues"
PROCESS_ACTION = "process issue"

WorkItem = Union[IssueWorkItem, RepoWorkItem]


def ensure_same_bot(config: RepoConfig, bot_username: str) -> bool:
    """True when ``config`` was written for the account the bot is running as."""
    return config.bot == bot_username


def _format_stack(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


class OpenBot:
    """
    Service responsible for applying repository rule configurations to open
    issues and pull requests.

    A batch runs in two stages sharing one bounded queue: first every work item
    is resolved into (config, repo, issue) triples, then the rule engine runs
    against each triple. Failures while discovering issues are isolated per
    repository; failures while running rules fail the batch unless
    ``isolate_issue_failures`` is set.
    """

    def __init__(
            self,
            github_client,
            bot_username: str,
            config_loader: Optional[ConfigLoader] = None,
            concurrency: int = CONCURRENCY_LIMIT,
            isolate_issue_failures: bool = False,
    ):
        self.github_client = github_client
        self.bot_username = bot_username
        self.config_loader = config_loader or ConfigLoader(github_client)
        self.concurrency = concurrency
        self.isolate_issue_failures = isolate_issue_failures

    async def get_repo(self, owner: str, repo: str) -> RepoWorkItem:
        raw_repo = await self.github_client.get_repo(owner, repo)
        return GitHubTranslator.to_repo_work_item(raw_repo)

    async def get_issue(self, owner: str, repo: str, number: int) -> IssueWorkItem:
        raw_issue = await self.github_client.get_issue(owner, repo, number)
        raw_repo = await self.github_client.get_repo(owner, repo)
        return GitHubTranslator.to_issue_work_item(raw_issue, raw_repo)

    async def get_repos_of_org(self, org: str) -> List[RepoWorkItem]:
        raw_repos = await self.github_client.get_repos_of_org(org)
        return [GitHubTranslator.to_repo_work_item(raw_repo) for raw_repo in raw_repos]

    async def get_config(self, owner: str, repo: str) -> RepoConfig:
        return await self.config_loader.get_config(owner, repo)

    async def process(
            self,
            work_items: Sequence[WorkItem],
            reporter: Reporter = noop_reporter,
            simulate: bool = False,
    ) -> None:
        """
        Resolves every work item into triples, then runs the rules on each of them.

        At most ``concurrency`` tasks execute at any time across both stages.
        """
        queue = BoundedWorkQueue(self.concurrency)

        for work_item in work_items:
            reporter(ReportEvent(item=work_item.full_name, action=FETCH_ACTION, change="queued"))

        logger.info(f"Resolving {len(work_items)} work item(s).")
        triple_lists = await queue_all(
            queue, work_items, lambda work_item: self._resolve_work_item(work_item, reporter)
        )
        triples = [triple for triple_list in triple_lists for triple in triple_list]

        for triple in triples:
            reporter(ReportEvent(item=triple.full_name, action=PROCESS_ACTION, change="queued"))

        logger.info(f"Processing {len(triples)} issue(s){' (simulated)' if simulate else ''}.")
        await queue_all(queue, triples, lambda triple: self._process_triple(triple, reporter, simulate))
        logger.info("Batch completed.")

    async def _resolve_work_item(self, work_item: WorkItem, reporter: Reporter) -> List[ProcessingTriple]:
        reporter(ReportEvent(item=work_item.full_name, action=FETCH_ACTION, change="start"))

        if work_item.type == "issue":
            # Directly named issues are not isolated: a broken config fails the batch
            config = await self.get_config(work_item.repo.owner, work_item.repo.name)
            return [ProcessingTriple(config=config, repo=work_item.repo, issue=work_item.data)]

        repo = work_item.repo
        try:
            config = await self.get_config(repo.owner, repo.name)
            if not ensure_same_bot(config, self.bot_username):
                raise BotUserMismatchError(expected=self.bot_username, configured=config.bot)
            issues = await self.github_client.get_issues_for_repo(repo.owner, repo.name)
        except Exception as e:
            logger.debug(f"Failed to process work item {work_item.full_name}: {e}")
            reporter(ReportEvent(
                item=work_item.full_name,
                error=f"Failed to process work item: {e}",
                stack=_format_stack(e),
            ))
            return []

        reporter(ReportEvent(item=work_item.full_name, action=FETCH_ACTION, change="done"))
        logger.debug(f"{repo.full_name}: {len(issues)} open issue(s).")
        return [ProcessingTriple(config=config, repo=repo, issue=issue) for issue in issues]

    async def _process_triple(self, triple: ProcessingTriple, reporter: Reporter, simulate: bool) -> None:
        item = triple.full_name
        reporter(ReportEvent(item=item, action=PROCESS_ACTION, change="start"))
        try:
            await self.process_issue_with_data(
                config=triple.config,
                owner=triple.repo.owner,
                repo=triple.repo.name,
                issue=triple.issue,
                reporter=reporter,
                simulate=simulate,
                repository=triple.repo,
            )
        except Exception as e:
            if not self.isolate_issue_failures:
                raise
            logger.debug(f"Failed to process issue {item}: {e}")
            reporter(ReportEvent(item=item, error=f"Failed to process issue: {e}", stack=_format_stack(e)))
            return
        reporter(ReportEvent(item=item, action=PROCESS_ACTION, change="done"))

    async def process_issue(
            self,
            owner: str,
            repo: str,
            number: int,
            reporter: Reporter = noop_reporter,
            simulate: bool = False,
    ) -> None:
        """
        Processes a single issue without batch enumeration.

        A repository without settings, or with settings for another bot, is
        skipped and reported rather than treated as an error.
        """
        item = f"{owner}/{repo}#{number}"
        try:
            config = await self.get_config(owner, repo)
        except Exception as e:
            logger.debug(f"No usable config for {item}: {e}")
            logger.debug(f"Skipping {item}: no config.")
            reporter(ReportEvent(item=item, action="skip (no config)"))
            return

        if not ensure_same_bot(config, self.bot_username):
            logger.debug(f"Skipping {item}: configured for bot '{config.bot}'.")
            reporter(ReportEvent(item=item, action="skip (different bot user)"))
            return

        issue = await self.github_client.get_issue(owner, repo, number)
        await self.process_issue_with_data(
            config=config, owner=owner, repo=repo, issue=issue, reporter=reporter, simulate=simulate
        )

    async def process_issue_with_data(
            self,
            config: RepoConfig,
            owner: str,
            repo: str,
            issue: Dict[str, Any],
            reporter: Reporter = noop_reporter,
            simulate: bool = False,
            repository: Optional[Repository] = None,
    ) -> None:
        """Attaches the lazy issue facade and hands it to the rule engine."""
        facade = IssueFacade.attach(self.github_client, owner, repo, issue, repository)
        context = RunContext(
            owner=owner,
            repo=repo,
            item=f"{owner}/{repo}#{facade.number}",
            github=self.github_client,
            bot_username=self.bot_username,
            data={},
            reporter=reporter,
            simulate=simulate,
        )
        await config.run(context, facade)
