"""External command primitive used by RUN_COMMAND."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path

from rich.markup import escape

from .utils import console, run_command

# Environment that keeps package-manager CLIs from waiting on a TTY.
NON_INTERACTIVE_ENV: dict[str, str] = {
    "CI": "1",
    "npm_config_yes": "true",
    "FORCE_COLOR": "0",
}


@dataclass
class CommandResult:
    """Exit code and captured output of one command."""

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def summary(self) -> str:
        status = "ok" if self.success else f"exit {self.exit_code}"
        return f"{self.command} ({status})"


class CommandRunner:
    """Runs external commands non-interactively.

    Scripted answers are written to the child's stdin, one per line, so CLIs
    that prompt anyway receive a deterministic response; without answers
    stdin is closed.

    Args:
        timeout: Default timeout in seconds for each command.
        verbose: Echo each command before running it.
    """

    def __init__(self, timeout: int = 600, verbose: bool = False) -> None:
        self.timeout = timeout
        self.verbose = verbose

    async def run(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        cwd: str | Path | None = None,
        answers: list[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run *command* with *args* and wait for it to finish.

        When *args* is given the command is executed directly (no shell);
        otherwise *command* is interpreted by the shell.
        """
        argv: str | list[str]
        if args:
            argv = [*shlex.split(command), *args]
            display = shlex.join(argv)
        else:
            argv = command
            display = command

        if self.verbose:
            console.print(f"  [dim]$ {escape(display)}[/dim]", highlight=False)

        input_text = "".join(f"{answer}\n" for answer in answers) if answers else None
        rc, stdout, stderr = await run_command(
            argv,
            cwd=cwd,
            timeout=timeout or self.timeout,
            input_text=input_text,
            env={**NON_INTERACTIVE_ENV, **(env or {})},
        )
        return CommandResult(command=display, exit_code=rc, stdout=stdout, stderr=stderr)
