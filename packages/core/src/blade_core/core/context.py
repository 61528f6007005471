from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .cancellation import CancelSignal
from .confirmation import ConfirmationResponder
from .types import PermissionMode


class ExecutionContext(BaseModel):
    """
    Per-call context created by the caller for one pipeline invocation.

    The permission mode is read from here on every call, so a mode change
    takes effect on the next context the caller builds.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    signal: CancelSignal = Field(default_factory=CancelSignal)
    confirmation_responder: ConfirmationResponder | None = None
    permission_mode: PermissionMode = PermissionMode.DEFAULT
    session_id: str | None = None
    workspace_root: Path | None = None
    on_progress: Callable[[str], None] | None = None

    def report_progress(self, output: str) -> None:
        if self.on_progress is not None:
            self.on_progress(output)
