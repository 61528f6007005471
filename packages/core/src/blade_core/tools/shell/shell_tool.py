import asyncio
import logging
import os
import shlex
import signal as signals
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from blade_core.core.cancellation import CancelSignal
from blade_core.core.context import ExecutionContext
from blade_core.core.types import ToolKind
from blade_core.tools.base.tool_base import BaseTool
from blade_core.tools.common import (
    ExecuteConfirmationDetails,
    ToolErrorKind,
    ToolResult,
)
from blade_core.utils.errors import OperationCancelledError
from blade_core.utils.paths import is_within_root

if TYPE_CHECKING:
    from blade_core.config.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300
MAX_OUTPUT_CHARS = 30000


class ShellToolParams(BaseModel):
    command: str = Field(..., description="Exact bash command to execute.")
    description: str | None = Field(
        None, description="Brief description of the command for the user."
    )
    directory: str | None = Field(
        None, description="Directory to run the command in, relative to the project root."
    )
    timeout: float | None = Field(
        None, description="Seconds before the command is killed (default 300)."
    )


def get_command_root(command: str) -> str | None:
    try:
        parts = shlex.split(command)
    except ValueError:
        return None
    return Path(parts[0]).name if parts else None


def has_command_substitution(command: str) -> bool:
    return "`" in command or "$(" in command


def has_command_chaining(command: str) -> bool:
    """Detects separators, pipes and redirections that run or write beyond the root command."""
    return any(token in command for token in (";", "&", "|", "\n", ">", "<"))


def get_command_risks(command: str) -> list[str]:
    risks = []
    if has_command_substitution(command):
        risks.append("Command substitution runs nested commands.")
    if has_command_chaining(command):
        risks.append("Chained commands, pipes or redirections run beyond the approved command.")
    return risks


def _truncate(output: str) -> str:
    if len(output) <= MAX_OUTPUT_CHARS:
        return output
    omitted = len(output) - MAX_OUTPUT_CHARS
    return output[:MAX_OUTPUT_CHARS] + f"\n... ({omitted} characters truncated)"


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(os.getpgid(proc.pid), signals.SIGKILL)
    except ProcessLookupError:
        pass


class ShellTool(BaseTool[ShellToolParams]):
    """A tool for executing shell commands."""

    NAME = "run_shell_command"

    def __init__(self, config: "Settings"):
        super().__init__(
            name=self.NAME,
            display_name="Shell",
            description="Executes a shell command in the project root and returns its output and exit code.",
            kind=ToolKind.EXECUTE,
            params_model=ShellToolParams,
            is_output_markdown=False,
            can_update_output=True,
        )
        self.config = config
        self.root_directory = Path(config.target_dir).resolve()

    def _cwd(self, params: ShellToolParams) -> Path:
        if params.directory:
            return self.root_directory / params.directory
        return self.root_directory

    def validate_tool_params(self, params: ShellToolParams) -> str | None:
        if not params.command.strip():
            return "Command cannot be empty."
        if not get_command_root(params.command):
            return "Could not identify command root."
        if params.directory and not is_within_root(
            self._cwd(params), self.root_directory
        ):
            return "Directory must be within the project root."
        if params.timeout is not None and params.timeout <= 0:
            return "Timeout must be a positive number of seconds."
        return None

    def get_description(self, params: ShellToolParams) -> str:
        description = params.command
        if params.directory:
            description += f" [in {params.directory}]"
        if params.description:
            description += f" ({params.description})"
        return description

    def get_affected_paths(self, params: ShellToolParams) -> list[str]:
        return [str(self._cwd(params))] if params.directory else []

    def abstract_rule(self, params: ShellToolParams) -> str | None:
        root = get_command_root(params.command)
        if not root:
            return ""
        return f"{self.name}(command:{{{root},{root} */**}})"

    async def requires_confirmation(
        self, params: ShellToolParams, signal: CancelSignal | None = None
    ) -> ExecuteConfirmationDetails | None:
        # An allow rule only vouches for the command root it names.
        risks = get_command_risks(params.command)
        if not risks:
            return None
        details = await self.get_confirmation_details(params, signal)
        return details.model_copy(update={"risks": risks})

    async def get_confirmation_details(
        self, params: ShellToolParams, signal: CancelSignal | None = None
    ) -> ExecuteConfirmationDetails:
        return ExecuteConfirmationDetails(
            title="Confirm Shell Command",
            message=params.description or f"Allow shell command: {params.command}",
            command=params.command,
            root_command=get_command_root(params.command),
        )

    async def execute(
        self, params: ShellToolParams, context: ExecutionContext
    ) -> ToolResult:
        context.signal.raise_if_cancelled()
        proc = await asyncio.create_subprocess_shell(
            params.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=self._cwd(params),
            start_new_session=True,  # To kill the whole process group
        )

        output = ""

        async def read_stream(stream):
            nonlocal output
            while True:
                line = await stream.readline()
                if not line:
                    break
                line_str = line.decode("utf-8", errors="replace")
                output += line_str
                context.report_progress(line_str)

        reader = asyncio.create_task(read_stream(proc.stdout))
        waiter = asyncio.create_task(proc.wait())
        cancelled = asyncio.create_task(context.signal.wait())
        timeout = params.timeout or DEFAULT_TIMEOUT_SECONDS

        try:
            done, _ = await asyncio.wait(
                {waiter, cancelled},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            _kill_process_group(proc)
            waiter.cancel()
            reader.cancel()
            raise
        finally:
            cancelled.cancel()

        if waiter not in done:
            _kill_process_group(proc)
            await proc.wait()
            reader.cancel()
            if cancelled in done:
                logger.info(f"Shell command cancelled: {params.command}")
                raise OperationCancelledError(
                    f"Command cancelled: {params.command}"
                )
            message = f"Command timed out after {timeout:g}s: {params.command}"
            result = ToolResult.failure(
                ToolErrorKind.EXECUTION_ERROR,
                message,
                llm_content=f"{message}\nOutput before timeout:\n{_truncate(output)}",
            )
            return result.model_copy(update={"metadata": {"timed_out": True}})

        await reader
        exit_code = proc.returncode
        output = _truncate(output)
        return ToolResult.ok(
            f"Command: {params.command}\nExit Code: {exit_code}\nOutput:\n{output or '(empty)'}",
            display_content=output or f"Command finished with exit code {exit_code}",
            exit_code=exit_code,
        )
