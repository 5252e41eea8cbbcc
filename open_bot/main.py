import argparse
import asyncio
import re
import sys
import logging
import uuid
from typing import List, Optional

from pydantic import ValidationError

from open_bot.infrastructure.github_client import GitHubRestClient
from open_bot.infrastructure.database import PostgresEventStore
from open_bot.infrastructure.settings import BotSettings, load_settings
from open_bot.application.bot_service import OpenBot
from open_bot.application.config_loader import ConfigLoader
from open_bot.application.reporting import EventRecorder, LoggingReporter

logger = logging.getLogger(__name__)

ISSUE_REF = re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)#(?P<number>\d+)$")
REPO_REF = re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)$")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="open-bot", description="Apply open-bot.yaml rules to open issues.")
    parser.add_argument("--simulate", action="store_true", help="compute actions without writing to GitHub")
    parser.add_argument("--verbose", action="store_true", help="log debug output")
    commands = parser.add_subparsers(dest="command", required=True)

    issue = commands.add_parser("issue", help="process a single issue")
    issue.add_argument("ref", type=parse_issue_ref, help="OWNER/REPO#NUMBER")

    repo = commands.add_parser("repo", help="process every open issue of repositories")
    repo.add_argument("refs", nargs="+", type=parse_repo_ref, help="OWNER/REPO")

    org = commands.add_parser("org", help="process every repository of an organization")
    org.add_argument("org")
    return parser


def parse_issue_ref(ref: str):
    match = ISSUE_REF.match(ref)
    if not match:
        raise argparse.ArgumentTypeError(f"Expected OWNER/REPO#NUMBER, got '{ref}'.")
    return match["owner"], match["repo"], int(match["number"])


def parse_repo_ref(ref: str):
    match = REPO_REF.match(ref)
    if not match:
        raise argparse.ArgumentTypeError(f"Expected OWNER/REPO, got '{ref}'.")
    return match["owner"], match["repo"]


async def execute(args: argparse.Namespace, settings: BotSettings) -> None:
    reporter = EventRecorder(forward=LoggingReporter())

    async with GitHubRestClient(token=settings.github_token) as github_client:
        bot = OpenBot(
            github_client=github_client,
            bot_username=settings.user,
            config_loader=ConfigLoader(github_client, override_settings=settings.override_settings),
            concurrency=settings.concurrency,
            isolate_issue_failures=settings.isolate_issue_failures,
        )

        try:
            if args.command == "issue":
                owner, repo, number = args.ref
                await bot.process_issue(owner, repo, number, reporter=reporter, simulate=args.simulate)
            else:
                if args.command == "repo":
                    work_items = [await bot.get_repo(owner, repo) for owner, repo in args.refs]
                else:
                    work_items = await bot.get_repos_of_org(args.org)
                await bot.process(work_items, reporter=reporter, simulate=args.simulate)
        finally:
            if settings.database_url:
                await store_events(settings.database_url, reporter)


async def store_events(db_url: str, recorder: EventRecorder) -> None:
    run_id = uuid.uuid4().hex
    store = PostgresEventStore(db_url=db_url)
    try:
        await store.create_schema()
        await store.bulk_insert(run_id, recorder.events)
        logger.info(f"Stored {len(recorder.events)} report event(s) as run {run_id}.")
    finally:
        await store.dispose()


def run(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    # Get GitHub token, bot user and optional settings from the environment
    try:
        settings = load_settings()
    except KeyError as e:
        logger.error(f"{e.args[0]} is not set in the environment.")
        sys.exit(1)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Invalid settings: {e}")
        sys.exit(1)

    try:
        asyncio.run(execute(args, settings))
    except KeyboardInterrupt:
        logger.info("Run interrupted by user. Exiting gracefully.")
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
