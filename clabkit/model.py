"""Lab topology data: nodes, endpoints, links and their consistency checks."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_PREFIX = "clab"
DOCKER_NET_NAME = "clab"
DOCKER_NET_IPV4_ADDR = "172.20.20.0/24"
DOCKER_NET_IPV6_ADDR = "2001:172:20:20::/64"
HOST_NS_PATH = "__host"
DEFAULT_VETH_LINK_MTU = 9500
CLAB_OUI = "aa:c1:ab"
MAX_IFACE_NAME_LEN = 15

CONTAINERLAB_LABEL = "containerlab"
NODE_NAME_LABEL = "clab-node-name"
NODE_KIND_LABEL = "clab-node-kind"
NODE_TYPE_LABEL = "clab-node-type"
NODE_GROUP_LABEL = "clab-node-group"
NODE_LAB_DIR_LABEL = "clab-node-lab-dir"
TOPO_FILE_LABEL = "clab-topo-file"
NODE_MGMT_NET_BR = "clab-mgmt-net-bridge"

CLAB_DIR_VAR = "__clabDir__"
NODE_DIR_VAR = "__clabNodeDir__"

CLAB_ENV_INTFS = "CLAB_INTFS"
LABEL_ENV_PREFIX = "CLAB_LABEL_"

KIND_BRIDGE = "bridge"
KIND_OVS = "ovs-bridge"
KIND_HOST = "host"
_ROOT_NETNS_KINDS = frozenset({KIND_BRIDGE, KIND_OVS, KIND_HOST})


class TopologyError(Exception):
    """Raised when a topology definition is inconsistent."""


@dataclass
class NodeConfig:
    """The resolved configuration of one lab node."""

    short_name: str
    long_name: str = ""
    fqdn: str = ""
    lab_dir: str = ""
    index: int = 0
    group: str = ""
    kind: str = ""
    node_type: str = ""
    image: str = ""
    user: str = ""
    runtime: str = ""
    network_mode: str = ""
    mgmt_ipv4_address: str = ""
    mgmt_ipv6_address: str = ""
    license: str = ""
    startup_delay: int = 0
    ns_path: str = ""
    deployment_status: str = ""
    env: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    binds: list[str] = field(default_factory=list)
    wait_for: list[str] = field(default_factory=list)
    endpoints: list["Endpoint"] = field(default_factory=list)
    config_vars: dict[str, Any] = field(default_factory=dict)


@dataclass
class Endpoint:
    """One side of a link: a node and an interface name on it."""

    node: NodeConfig
    endpoint_name: str
    mac: str = ""

    def __post_init__(self) -> None:
        if len(self.endpoint_name) > MAX_IFACE_NAME_LEN:
            raise TopologyError(
                f"interface '{self.endpoint_name}' name exceeds maximum length "
                f"of {MAX_IFACE_NAME_LEN} characters"
            )


@dataclass
class Link:
    """A point-to-point link between two endpoints."""

    a: Endpoint
    b: Endpoint
    mtu: int = DEFAULT_VETH_LINK_MTU
    labels: dict[str, str] = field(default_factory=dict)
    vars: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"link [{self.a.node.short_name}:{self.a.endpoint_name}, "
            f"{self.b.node.short_name}:{self.b.endpoint_name}]"
        )


@dataclass
class LinkConfig:
    """A link as written in the topology file."""

    endpoints: list[str]
    labels: dict[str, str] = field(default_factory=dict)
    vars: dict[str, Any] = field(default_factory=dict)


def _values(items):
    return items.values() if isinstance(items, Mapping) else items


def _quote_list(items: Iterable[str]) -> str:
    return "[" + " ".join(json.dumps(s, ensure_ascii=False) for s in items) + "]"


def long_name(prefix: str, lab_name: str, node_name: str) -> str:
    """Container name of a node: ``$prefix-$lab-$node`` unless the prefix says otherwise."""
    if prefix == "":
        return node_name
    if prefix == "__lab-name":
        return f"{lab_name}-{node_name}"
    return f"{prefix}-{lab_name}-{node_name}"


def check_endpoint(endpoint: str) -> None:
    """Validate the ``node:interface`` syntax of an endpoint."""
    parts = endpoint.split(":")
    if len(parts) != 2:
        raise TopologyError(f"malformed endpoint definition: {endpoint}")
    if parts[1] == "eth0":
        raise TopologyError(
            "eth0 interface can't be used in the endpoint definition as it is "
            f"added by docker automatically: '{endpoint}'"
        )


def verify_links(link_configs: Iterable[LinkConfig]) -> None:
    """Check endpoint syntax and that no endpoint appears twice."""
    seen: set[str] = set()
    dups: list[str] = []
    for lc in link_configs:
        for e in lc.endpoints:
            check_endpoint(e)
            if e in seen:
                dups.append(e)
            seen.add(e)
    if dups:
        raise TopologyError(
            f"endpoints {_quote_list(dups)} appeared more than once "
            "in the links section of the topology file"
        )


def verify_duplicate_addresses(nodes) -> None:
    """Check that every static management address is used only once."""
    seen: set[str] = set()
    for node in _values(nodes):
        for ip in (node.mgmt_ipv4_address, node.mgmt_ipv6_address):
            if not ip:
                continue
            if ip in seen:
                raise TopologyError(
                    f"management IP address {ip} appeared more than once in the topology file"
                )
            seen.add(ip)


def verify_root_netns_interface_uniqueness(links) -> None:
    """Check that bridge, ovs-bridge and host interfaces are uniquely named."""
    seen: set[str] = set()
    for link in _values(links):
        for ep in (link.a, link.b):
            if ep.node.kind not in _ROOT_NETNS_KINDS:
                continue
            if ep.endpoint_name in seen:
                raise TopologyError(
                    f"interface {ep.endpoint_name} defined for node {ep.node.short_name} "
                    "has already been used in other bridges, ovs-bridges or host interfaces.\n"
                    "Make sure that nodes of these kinds use unique interface names"
                )
            seen.add(ep.endpoint_name)


def get_short_name(lab_name: str, lab_prefix: str, container_name: str) -> str:
    """Recover a node's short name from its container name."""
    if lab_prefix == "":
        return container_name
    parts = container_name.split(f"-{lab_name}-")
    if len(parts) != 2:
        raise TopologyError(f'failed to parse container name "{container_name}"')
    return parts[1]


def to_env_key(key: str) -> str:
    """Turn an arbitrary label key into an upper-case environment variable name."""
    return re.sub(r"[^A-Z0-9_]", "_", key.upper())


def add_default_labels(node: NodeConfig, lab_name: str, topo_file: str) -> None:
    """Attach the standard lab labels to a node."""
    node.labels.update(
        {
            CONTAINERLAB_LABEL: lab_name,
            NODE_NAME_LABEL: node.short_name,
            NODE_KIND_LABEL: node.kind,
            NODE_TYPE_LABEL: node.node_type,
            NODE_GROUP_LABEL: node.group,
            NODE_LAB_DIR_LABEL: node.lab_dir,
            TOPO_FILE_LABEL: topo_file,
        }
    )


def labels_to_env_vars(node: NodeConfig) -> None:
    """Expose each label as a ``CLAB_LABEL_<KEY>`` environment variable."""
    for key, value in node.labels.items():
        node.env[LABEL_ENV_PREFIX + to_env_key(key)] = value


def set_link_count_env(node: NodeConfig) -> None:
    """Record the number of the node's links in its environment."""
    node.env[CLAB_ENV_INTFS] = str(len(node.endpoints))