"""Graph of a lab topology: Graphviz DOT output and node details for viewers."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from clabkit.model import NODE_NAME_LABEL, Link, NodeConfig

log = logging.getLogger(__name__)

_PLAIN_ID = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*|-?(?:\.[0-9]+|[0-9]+(?:\.[0-9]*)?))$")


@dataclass
class GraphNode:
    """What a topology viewer shows about one node."""

    name: str
    kind: str = ""
    image: str = ""
    group: str = ""
    state: str = ""
    ipv4_address: str = ""
    ipv6_address: str = ""


def _config(item: Any) -> NodeConfig:
    cfg = getattr(item, "config", None)
    return cfg if isinstance(cfg, NodeConfig) else item


def _named_configs(nodes) -> list[tuple[str, NodeConfig]]:
    if isinstance(nodes, Mapping):
        return [(name, _config(nodes[name])) for name in sorted(nodes)]
    return [(cfg.short_name, cfg) for cfg in map(_config, nodes)]


def _links(links) -> list[Link]:
    if isinstance(links, Mapping):
        return [links[k] for k in sorted(links)]
    return list(links)


def _quote(value: str) -> str:
    if _PLAIN_ID.match(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _attr_list(attrs: Mapping[str, str]) -> str:
    return ", ".join(f"{_quote(k)}={_quote(v)}" for k, v in sorted(attrs.items()))


def _node_attrs(label: str, cfg: NodeConfig) -> dict[str, str]:
    attrs = {
        "color": "red",
        "style": "filled",
        "fillcolor": "red",
        "label": label,
        "xlabel": cfg.kind,
    }
    if cfg.group.strip():
        attrs["group"] = cfg.group
        if "bb" in cfg.group:
            attrs.update(fillcolor="blue", color="blue", fontcolor="white")
        elif "srl" in cfg.kind:
            attrs.update(fillcolor="green", color="green", fontcolor="black")
    return attrs


def build_dot(name: str, nodes, links) -> str:
    """Render the topology as an undirected Graphviz graph."""
    lines = [f"graph {_quote(name)} {{"]
    for label, cfg in _named_configs(nodes):
        lines.append(f"\t{_quote(cfg.short_name)} [ {_attr_list(_node_attrs(label, cfg))} ];")
    for link in _links(links):
        a = link.a.node.short_name
        b = link.b.node.short_name
        color = "blue" if "client" in a or "client" in b else "black"
        lines.append(f"\t{_quote(a)}--{_quote(b)} [ {_attr_list({'color': color})} ];")
    lines.append("}")
    return "\n".join(lines) + "\n"


def generate_graph(name: str, nodes, links, graph_dir: str) -> tuple[str, str | None]:
    """Write ``<name>.dot`` into ``graph_dir`` and, if Graphviz is installed, ``<name>.png``.

    Returns the paths of the DOT file and of the PNG file (None if not made).
    """
    log.info("Generating lab graph...")
    os.makedirs(graph_dir, mode=0o755, exist_ok=True)
    dot_file = os.path.join(graph_dir, f"{name}.dot")
    with open(dot_file, "w", encoding="utf-8") as f:
        f.write(build_dot(name, nodes, links))
    log.info("Created %s", dot_file)

    if shutil.which("dot") is None:
        log.debug("executable dot doesn't exist!")
        return dot_file, None

    png_file = os.path.join(graph_dir, f"{name}.png")
    try:
        subprocess.run(
            ["dot", "-o", png_file, "-Tpng", dot_file], capture_output=True, check=True
        )
    except (OSError, subprocess.CalledProcessError) as err:
        msg = (
            f"failed to generate png ({png_file}) from dot file ({dot_file}), "
            f"with error ({err})"
        )
        log.error("%s", msg)
        raise RuntimeError(msg) from err
    log.info("Created %s", png_file)
    return dot_file, png_file


def _from_config(cfg: NodeConfig) -> GraphNode:
    return GraphNode(
        name=cfg.short_name,
        kind=cfg.kind,
        image=cfg.image,
        group=cfg.group,
        state="N/A",
        ipv4_address=cfg.mgmt_ipv4_address,
        ipv6_address=cfg.mgmt_ipv6_address,
    )


def build_graph_from_topo(nodes) -> list[GraphNode]:
    """Graph nodes as defined in the topology, with no runtime state."""
    log.info("building graph from topology file")
    return [_from_config(cfg) for _, cfg in _named_configs(nodes)]


def build_graph_from_deployed_lab(nodes, containers: Iterable[Any]) -> list[GraphNode]:
    """Graph nodes enriched with the state and addresses of running containers.

    Each container is read through its ``labels``, ``state``, ``status``,
    ``ipv4_address`` and ``ipv6_address`` attributes. Nodes without a
    container follow, as defined in the topology.
    """
    by_name = {name: cfg for name, cfg in _named_configs(nodes)}
    result: list[GraphNode] = []
    seen: set[str] = set()
    for cont in containers:
        labels = getattr(cont, "labels", None) or {}
        node_name = labels.get(NODE_NAME_LABEL, "")
        log.debug("looking for node name %s", node_name)
        cfg = by_name.get(node_name)
        if cfg is None:
            continue
        seen.add(cfg.short_name)
        result.append(
            GraphNode(
                name=cfg.short_name,
                kind=cfg.kind,
                image=cfg.image,
                group=cfg.group,
                state=f"{getattr(cont, 'state', '')}/{getattr(cont, 'status', '')}",
                ipv4_address=getattr(cont, "ipv4_address", ""),
                ipv6_address=getattr(cont, "ipv6_address", ""),
            )
        )
    result.extend(_from_config(cfg) for cfg in by_name.values() if cfg.short_name not in seen)
    return result