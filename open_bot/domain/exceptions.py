class OpenBotException(Exception):
    """Base exception for all open-bot errors."""
    pass

class ConfigReadError(OpenBotException):
    """Raised when a repository's settings file cannot be fetched, decoded, parsed or validated."""

    KINDS = ("fetch", "decode", "parse", "validate")

    def __init__(self, owner: str, repo: str, kind: str, cause: BaseException):
        self.owner = owner
        self.repo = repo
        self.kind = kind
        self.cause = cause
        super().__init__(f"Cannot read settings file in {owner}/{repo}: {cause}")

class BotUserMismatchError(OpenBotException):
    """Raised when a repository is configured for a different bot account."""
    def __init__(self, expected: str, configured: str,
                 message: str = "Reject to process repo of different bot user (config.bot property)"):
        self.expected = expected
        self.configured = configured
        super().__init__(message)

class ForgeRequestError(OpenBotException):
    """Raised when the GitHub REST API answers with a non-success status."""
    def __init__(self, status: int, url: str, message: str = ""):
        self.status = status
        self.url = url
        detail = f": {message}" if message else ""
        super().__init__(f"GitHub request failed ({status}) for {url}{detail}")
