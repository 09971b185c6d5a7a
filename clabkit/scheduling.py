"""Ordering and concurrent execution of node creation and removal."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from clabkit.deps import DependencyError, DependencyManager
from clabkit.model import NodeConfig

log = logging.getLogger(__name__)

DEFAULT_RUNTIME = "docker"
IGNITE_RUNTIME = "ignite"
CREATED = "created"
EXTERNAL_WAIT_TIMEOUT = 15 * 60.0

# granularity at which blocked threads look for cancellation
_TICK = 0.05


class ContainerStatus(str, Enum):
    """State of a container as reported by a runtime."""

    RUNNING = "running"
    STOPPED = "stopped"
    NOT_FOUND = "notfound"


@dataclass
class LabNode:
    """A lab node together with the actions that create and remove it.

    ``pre_deploy`` is called with the lab name, the lab CA directory and the
    lab root CA directory; ``deploy`` and ``delete`` take no arguments.
    A missing action is simply skipped.
    """

    config: NodeConfig
    runtime_name: str = DEFAULT_RUNTIME
    pre_deploy: Callable[[str, str, str], None] | None = None
    deploy: Callable[[], None] | None = None
    delete: Callable[[], None] | None = None


def _container_reference(cfg: NodeConfig) -> str | None:
    """Name of the container whose netns the node shares, if any."""
    mode, sep, ref = cfg.network_mode.partition(":")
    if mode != "container" or not sep or not ref:
        return None
    return ref


def create_namespace_sharing_dependency(node_map: Mapping[str, LabNode], dm) -> None:
    """Make nodes in ``container:<name>`` network mode wait for that lab node."""
    for node_name, node in node_map.items():
        ref = _container_reference(node.config)
        if ref is None or ref not in node_map:
            # no shared netns, or the referenced container is external
            continue
        dm.add_dependency(ref, node_name)


def create_static_dynamic_dependency(node_map: Mapping[str, LabNode], dm) -> None:
    """Schedule nodes with a static management address before dynamic ones."""
    static_nodes = [
        name
        for name, node in node_map.items()
        if node.config.mgmt_ipv4_address or node.config.mgmt_ipv6_address
    ]
    dynamic_nodes = [name for name in node_map if name not in static_nodes]
    for dyn in dynamic_nodes:
        for static in static_nodes:
            dm.add_dependency(static, dyn)


def create_wait_for_dependency(node_map: Mapping[str, LabNode], dm) -> None:
    """Reflect the user-defined ``wait-for`` lists as dependencies."""
    for waiter, node in node_map.items():
        for wait_for in node.config.wait_for:
            dm.add_dependency(wait_for, waiter)


def create_serial_runtime_dependency(
    node_map: Mapping[str, LabNode], dm, runtime_name: str
) -> None:
    """Chain the nodes of ``runtime_name`` so that they start one after the other."""
    previous: LabNode | None = None
    for node in node_map.values():
        if node.runtime_name != runtime_name:
            continue
        if previous is not None:
            dm.add_dependency(node.config.short_name, previous.config.short_name)
        previous = node


class Scheduler:
    """Creates and removes the nodes of a lab with a pool of workers."""

    def __init__(
        self,
        nodes: Mapping[str, LabNode],
        *,
        lab_name: str = "",
        lab_ca: str = "",
        lab_ca_root: str = "",
        status_getter: Callable[[str], ContainerStatus] | None = None,
        poll_interval: float = 1.0,
        external_wait_timeout: float = EXTERNAL_WAIT_TIMEOUT,
        serial_runtime: str = IGNITE_RUNTIME,
    ) -> None:
        self.nodes = dict(nodes)
        self.lab_name = lab_name
        self.lab_ca = lab_ca
        self.lab_ca_root = lab_ca_root
        self.status_getter = status_getter
        self.poll_interval = poll_interval
        self.external_wait_timeout = external_wait_timeout
        self.serial_runtime = serial_runtime
        self._lock = threading.Lock()
        self._stop = threading.Event()

    def cancel(self) -> None:
        """Ask running workers and waiters to stop."""
        self._stop.set()

    def create_nodes(self, max_workers: int) -> list[str]:
        """Create all nodes respecting their dependencies.

        Returns the short names of the nodes that were created, in the order
        in which they finished. Raises DependencyError for unknown or cyclic
        dependencies.
        """
        dm = DependencyManager()
        for name in self.nodes:
            dm.add_node(name)
        create_static_dynamic_dependency(self.nodes, dm)
        create_wait_for_dependency(self.nodes, dm)
        create_serial_runtime_dependency(self.nodes, dm, self.serial_runtime)
        create_namespace_sharing_dependency(self.nodes, dm)
        dm.check_acyclicity()
        return self._schedule(max_workers, dm)

    def _schedule(self, max_workers: int, dm: DependencyManager) -> list[str]:
        if not self.nodes:
            return []
        if max_workers < 1:
            raise ValueError("at least one worker is required to create nodes")
        workers = min(max_workers, len(self.nodes))
        work: queue.Queue[LabNode | None] = queue.Queue()
        created: list[str] = []

        def worker(i: int) -> None:
            while not self._stop.is_set():
                try:
                    node = work.get(timeout=_TICK)
                except queue.Empty:
                    continue
                if node is None:
                    log.debug("Worker %d terminating...", i)
                    return
                log.debug("Worker %d received node: %s", i, node.config)
                self._deploy(node, dm, created)

        def feeder(node: LabNode) -> None:
            name = node.config.short_name
            try:
                while not dm.wait_for_node_dependencies(name, timeout=_TICK):
                    if self._stop.is_set():
                        return
            except DependencyError as err:
                log.error("%s", err)
            self.wait_for_external_node_dependencies(name)
            if not self._stop.is_set():
                work.put(node)

        worker_threads = [
            threading.Thread(target=worker, args=(i,), daemon=True) for i in range(workers)
        ]
        feeder_threads = [
            threading.Thread(target=feeder, args=(node,), daemon=True)
            for node in self.nodes.values()
        ]
        for t in worker_threads + feeder_threads:
            t.start()
        for t in feeder_threads:
            t.join()
        for _ in worker_threads:
            work.put(None)
        for t in worker_threads:
            t.join()
        return created

    def _deploy(self, node: LabNode, dm: DependencyManager, created: list[str]) -> None:
        cfg = node.config
        if cfg.startup_delay > 0:
            log.info('node "%s" is being delayed for %d seconds', cfg.short_name, cfg.startup_delay)
            if self._stop.wait(cfg.startup_delay):
                return
        try:
            if node.pre_deploy is not None:
                node.pre_deploy(self.lab_name, self.lab_ca, self.lab_ca_root)
        except Exception as err:  # noqa: BLE001 - a failed node must not stop the lab
            log.error('failed pre-deploy phase for node "%s": %s', cfg.short_name, err)
            return
        try:
            if node.deploy is not None:
                node.deploy()
        except Exception as err:  # noqa: BLE001
            log.error('failed deploy phase for node "%s": %s', cfg.short_name, err)
            return
        with self._lock:
            cfg.deployment_status = CREATED
            created.append(cfg.short_name)
        dm.signal_done(cfg.short_name)

    def wait_for_external_node_dependencies(self, node_name: str) -> bool:
        """Wait until an external container whose netns the node shares is running.

        Returns False if the wait timed out, was cancelled or could not be done.
        """
        node = self.nodes.get(node_name)
        if node is None:
            log.error('unable to find referenced node "%s"', node_name)
            return True
        ref = _container_reference(node.config)
        if ref is None or ref in self.nodes:
            return True
        if self.status_getter is None:
            log.error('no runtime to query the status of container "%s"', ref)
            return False
        deadline = time.monotonic() + self.external_wait_timeout
        while True:
            if self.status_getter(ref) == ContainerStatus.RUNNING:
                log.debug('container "%s" referenced by node "%s" is running', ref, node_name)
                return True
            if self._stop.is_set() or time.monotonic() >= deadline:
                log.error(
                    'node "%s" gave up waiting for container "%s" to be running',
                    node_name, ref,
                )
                return False
            log.info('node "%s" waits for container "%s" to be running', node_name, ref)
            if self._stop.wait(self.poll_interval):
                return False

    def delete_nodes(self, workers: int, serial_nodes: Iterable[str] = ()) -> list[str]:
        """Remove all nodes; those whose long name is in ``serial_nodes`` one by one.

        Returns the long names of the nodes that could not be removed.
        """
        serial = set(serial_nodes)
        serial_list = [n for n in self.nodes.values() if n.config.long_name in serial]
        concurrent = [n for n in self.nodes.values() if n.config.long_name not in serial]
        if concurrent and workers < 1:
            raise ValueError("at least one worker is required to delete nodes")
        failed: list[str] = []

        def remove(node: LabNode) -> None:
            if self._stop.is_set() or node.delete is None:
                return
            try:
                node.delete()
            except Exception as err:  # noqa: BLE001
                log.error('could not remove container "%s": %s', node.config.long_name, err)
                with self._lock:
                    failed.append(node.config.long_name)

        def remove_serially() -> None:
            for node in serial_list:
                remove(node)

        serial_thread = threading.Thread(target=remove_serially, daemon=True)
        serial_thread.start()
        if concurrent:
            work: queue.Queue[LabNode | None] = queue.Queue()
            for node in concurrent:
                work.put(node)

            def worker() -> None:
                while True:
                    node = work.get()
                    if node is None:
                        return
                    remove(node)

            threads = [threading.Thread(target=worker, daemon=True) for _ in range(workers)]
            for _ in threads:
                work.put(None)
            for t in threads:
                t.start()
            for t in threads:
                t.join()
        serial_thread.join()
        return failed