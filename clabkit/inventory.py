"""Ansible inventory generation for a lab."""

from __future__ import annotations

import os
from collections.abc import Mapping

from clabkit.model import NodeConfig

INVENTORY_FILE = "ansible-inventory.yml"
ANSIBLE_GROUP_LABEL = "ansible-group"
ANSIBLE_NO_HOST_VAR_LABEL = "ansible-no-host-var"


def _node_configs(nodes) -> list[NodeConfig]:
    items = nodes.values() if isinstance(nodes, Mapping) else nodes
    result = []
    for item in items:
        cfg = getattr(item, "config", None)
        result.append(cfg if isinstance(cfg, NodeConfig) else item)
    return result


def generate_ansible_inventory(nodes) -> str:
    """Render the inventory: hosts grouped by kind, then by ``ansible-group`` label."""
    by_kind: dict[str, list[NodeConfig]] = {}
    by_group: dict[str, list[NodeConfig]] = {}
    for cfg in _node_configs(nodes):
        by_kind.setdefault(cfg.kind, []).append(cfg)
        group = cfg.labels.get(ANSIBLE_GROUP_LABEL, "")
        if group:
            by_group.setdefault(group, []).append(cfg)

    parts = ["all:\n  children:"]
    for kind in sorted(by_kind):
        parts.append(f"\n    {kind}:\n      hosts:")
        for cfg in sorted(by_kind[kind], key=lambda c: c.short_name):
            parts.append(f"\n        {cfg.long_name}:")
            if cfg.labels.get(ANSIBLE_NO_HOST_VAR_LABEL, "") == "":
                parts.append(f"\n          ansible_host: {cfg.mgmt_ipv4_address}")
    for group in sorted(by_group):
        parts.append(f"\n    {group}:\n      hosts:")
        for cfg in sorted(by_group[group], key=lambda c: c.short_name):
            parts.append(
                f"\n        {cfg.long_name}:\n          ansible_host: {cfg.mgmt_ipv4_address}"
            )
    parts.append("\n")
    return "".join(parts)


def write_ansible_inventory(nodes, lab_dir: str) -> str:
    """Write the inventory into the lab directory and return its path."""
    path = os.path.join(lab_dir, INVENTORY_FILE)
    with open(path, "w", encoding="utf-8") as f:
        f.write(generate_ansible_inventory(nodes))
    return path