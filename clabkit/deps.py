"""Tracking of creation-order dependencies between lab nodes."""

from __future__ import annotations

import logging
import threading

log = logging.getLogger(__name__)


class DependencyError(Exception):
    """Raised for unknown nodes or unresolvable dependency graphs."""


class _Counter:
    """A wait group: wait() blocks until the counter drops to zero."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self, delta: int = 1) -> None:
        with self._cond:
            self._count += delta
            if self._count < 0:
                raise DependencyError("negative wait counter")
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        self.add(-1)

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._count == 0)


def _unknown(name: str) -> DependencyError:
    return DependencyError(f'node "{name}" is not known to the dependency manager')


class DependencyManager:
    """Records which nodes must be created before which others."""

    def __init__(self) -> None:
        # per node: a counter of dependencies that are not yet satisfied
        self._wait_groups: dict[str, _Counter] = {}
        # per node: names of the nodes that wait for it
        self._dependers: dict[str, list[str]] = {}

    def add_node(self, name: str) -> None:
        """Register a node."""
        self._wait_groups[name] = _Counter()
        self._dependers[name] = []

    def add_dependency(self, dependee: str, depender: str) -> None:
        """Make ``depender`` wait until ``dependee`` has been created."""
        if depender not in self._wait_groups:
            raise _unknown(depender)
        if dependee not in self._dependers:
            raise _unknown(dependee)
        self._wait_groups[depender].add(1)
        self._dependers[dependee].append(depender)

    def wait_for_node_dependencies(self, node_name: str) -> None:
        """Block until every node that ``node_name`` depends on is done."""
        if node_name not in self._wait_groups:
            raise _unknown(node_name)
        self._wait_groups[node_name].wait()

    def signal_done(self, node_name: str) -> None:
        """Mark ``node_name`` as created, releasing one dependency of each depender."""
        if node_name not in self._dependers:
            log.error(
                'tried to Signal Done for node "%s" but node is unknown to the DependencyManager',
                node_name,
            )
            return
        for depender in self._dependers[node_name]:
            self._wait_groups[depender].done()

    def check_acyclicity(self) -> None:
        """Raise DependencyError if the recorded dependencies contain a cycle."""
        log.debug("Dependencies:\n%s", self)
        if not is_acyclic(self._dependers):
            raise DependencyError(f"cyclic dependencies found!\n{self}")

    def __str__(self) -> str:
        dependencies: dict[str, list[str]] = {name: [] for name in self._wait_groups}
        for dependee, dependers in self._dependers.items():
            for depender in dependers:
                dependencies.setdefault(depender, []).append(dependee)
        return "\n".join(
            f"{name} -> [ {', '.join(deps)} ]" for name, deps in dependencies.items()
        )


def is_acyclic(node_dependers: dict[str, list[str]]) -> bool:
    """Check a dependee -> [dependers] mapping for cycles.

    Nodes that nothing depends on are peeled off round by round; if nodes
    remain but none of them can be peeled, the graph has a cycle.
    """
    remaining = {name: list(deps) for name, deps in node_dependers.items()}
    round_no = 1
    while remaining:
        log.debug(
            "- cycle check round %d - \n%s",
            round_no,
            "\n".join(f"{k} <- [ {', '.join(v)} ]" for k, v in remaining.items()),
        )
        leaves = {name for name, deps in remaining.items() if not deps}
        if not leaves:
            return False
        remaining = {
            name: [dep for dep in deps if dep not in leaves]
            for name, deps in remaining.items()
            if deps
        }
        round_no += 1
    log.debug("node creation graph is successfully validated as being acyclic")
    return True