"""Exception hierarchy for postdesk.

A failed push is not an error: it is reported through
``PublishResult.needs_manual_push``. Only a publish that could not start,
or a stage/commit that could not be performed, raises.
"""


class PostdeskError(Exception):
    """Base class for postdesk errors."""


class PublishRejected(PostdeskError):
    """A publish was refused before staging began.

    Raised when the workspace is not a repository, another publish is
    already running, or there is nothing pending to publish.
    """


class PublishError(PostdeskError):
    """Staging or committing failed; no commit was created.

    Attributes:
        stage: The pipeline stage that failed (``"staging"`` or ``"committing"``).
    """

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        return f"{self.stage} failed: {self.args[0]}"


class NoDocumentOpen(PostdeskError):
    """An operation needed an open document and none is open."""
