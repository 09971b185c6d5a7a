"""Commands executed in lab containers and their collected results."""

from __future__ import annotations

import json
import logging
import shlex
from dataclasses import dataclass, field
from enum import Enum

log = logging.getLogger(__name__)


class ExecFormat(str, Enum):
    """Output formats for execution results."""

    JSON = "json"
    PLAIN = "plain"


class ExecNotSupportedError(Exception):
    """Raised when a node kind does not support exec."""

    def __init__(self, message: str = "exec not supported for this kind") -> None:
        super().__init__(message)


def parse_exec_output_format(s: str) -> ExecFormat:
    """Parse a user-supplied output format; ``table`` means plain."""
    value = s.strip().lower()
    if value == ExecFormat.JSON.value:
        return ExecFormat.JSON
    if value in (ExecFormat.PLAIN.value, "table"):
        return ExecFormat.PLAIN
    raise ValueError(
        f'cannot parse "{s}" as execution output format, '
        f'supported output formats ["json" "plain"]'
    )


@dataclass
class ExecCmd:
    """A command in its argument-list form."""

    cmd: list[str] = field(default_factory=list)

    @classmethod
    def from_string(cls, cmd: str) -> "ExecCmd":
        """Split a shell-like command line into arguments."""
        return cls(shlex.split(cmd))

    def cmd_string(self) -> str:
        return " ".join(self.cmd)


@dataclass
class ExecResult:
    """The outcome of running one command."""

    cmd: list[str] = field(default_factory=list)
    return_code: int = 0
    stdout: str = ""
    stderr: str = ""

    def cmd_string(self) -> str:
        return " ".join(self.cmd)

    def _as_dict(self) -> dict:
        return {
            "cmd": list(self.cmd),
            "return-code": self.return_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }

    def dump(self, fmt: str) -> str:
        """Render the result as JSON or plain text; other formats give ''."""
        if fmt == ExecFormat.JSON:
            return json.dumps(self._as_dict(), indent=2, ensure_ascii=False)
        if fmt == ExecFormat.PLAIN:
            return str(self)
        return ""

    def __str__(self) -> str:
        return (
            f"Cmd: {self.cmd_string()}\nReturnCode: {self.return_code}\n"
            f"StdOut:\n{self.stdout}\nStdErr:\n{self.stderr}\n"
        )


class ExecCollection:
    """Execution results grouped by container."""

    def __init__(self) -> None:
        self._entries: dict[str, list[ExecResult]] = {}

    def add(self, container_id: str, result: ExecResult) -> None:
        self._entries.setdefault(container_id, []).append(result)

    def add_all(self, container_id: str, results) -> None:
        self._entries.setdefault(container_id, []).extend(results)

    def dump(self, fmt: str) -> str:
        """Render all results as JSON or plain text; other formats give ''."""
        if fmt == ExecFormat.JSON:
            data = {
                key: [r._as_dict() for r in results]
                for key, results in sorted(self._entries.items())
            }
            return json.dumps(data, indent=2, ensure_ascii=False)
        if fmt == ExecFormat.PLAIN:
            blocks = [
                f"Node: {key}\n" + "".join(str(r) for r in results)
                for key, results in self._entries.items()
                if results
            ]
            return "\n+++++++++++++++++++++++++++++\n\n".join(blocks)
        return ""

    def log(self) -> None:
        """Log every result: failures as errors, the rest as info."""
        for key, results in self._entries.items():
            for r in results:
                if r.return_code != 0 or r.stderr:
                    log.error(
                        "Failed to execute command '%s' on node %s. rc=%d,\nstdout:\n%s\nstderr:\n%s",
                        r.cmd_string(), key, r.return_code, r.stdout, r.stderr,
                    )
                else:
                    log.info(
                        "Executed command '%s' on node %s. stdout:\n%s",
                        r.cmd_string(), key, r.stdout,
                    )