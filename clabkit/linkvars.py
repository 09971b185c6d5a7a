"""Template variables for nodes and links, including link address calculation."""

from __future__ import annotations

import glob
import ipaddress
import logging
import os
from collections.abc import Mapping
from typing import Any, Union

from clabkit.model import Link, NodeConfig

log = logging.getLogger(__name__)

VK_NODE_NAME = "clab_node"
VK_NODES = "clab_nodes"
VK_LINKS = "clab_links"
VK_FAR_END = "clab_far"
VK_ROLE = "clab_role"
VK_MANAGEMENT_IPV4 = "clab_management_ipv4"
VK_MANAGEMENT_IPV6 = "clab_management_ipv6"
VK_KIND = "clab_kind"
VK_TYPE = "clab_type"

VK_SYSTEM_IP = "clab_system_ip"
VK_LINK_IP = "clab_link_ip"
VK_LINK_NAME = "clab_link_name"
VK_LINK_NUM = "clab_link_num"

Interface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _text(value: Any) -> str:
    """Plain text form of a variable value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _node_configs(nodes) -> list[NodeConfig]:
    items = nodes.values() if isinstance(nodes, Mapping) else nodes
    result = []
    for item in items:
        cfg = getattr(item, "config", None)
        result.append(cfg if isinstance(cfg, NodeConfig) else item)
    return result


def _links(links) -> list[Link]:
    if isinstance(links, Mapping):
        return [links[k] for k in sorted(links)]
    return list(links)


def prepare_vars(nodes, links) -> dict[str, dict[str, Any]]:
    """Build the template variables of every node, links included.

    Returns a mapping of node short name to its variables.
    """
    result: dict[str, dict[str, Any]] = {}
    for cfg in _node_configs(nodes):
        name = cfg.short_name
        node_vars: dict[str, Any] = {
            VK_NODE_NAME: name,
            VK_KIND: cfg.kind,
            VK_MANAGEMENT_IPV4: cfg.mgmt_ipv4_address,
            VK_MANAGEMENT_IPV6: cfg.mgmt_ipv6_address,
            VK_TYPE: cfg.node_type,
        }
        for key, value in cfg.config_vars.items():
            if key in (VK_NODES, VK_NODE_NAME):
                log.warning(
                    "the variable %s on %s will be ignored, it hides other nodes", key, name
                )
                continue
            node_vars[key] = value
        node_vars[VK_LINKS] = []
        node_vars.setdefault(VK_ROLE, cfg.kind)
        result[name] = node_vars

    for idx, link in enumerate(_links(links)):
        vars_a: dict[str, Any] = {}
        vars_b: dict[str, Any] = {}
        try:
            prepare_link_vars(link, vars_a, vars_b)
        except ValueError as err:
            log.error("cannot prepare link vars for %d. %s: %s", idx, link, err)
        for ep, link_vars in ((link.a, vars_a), (link.b, vars_b)):
            target = result.get(ep.node.short_name)
            if target is None:
                log.warning(
                    "link %s refers to node %s which has no template variables",
                    link, ep.node.short_name,
                )
                continue
            target[VK_LINKS].append(link_vars)

    all_nodes: dict[str, dict[str, Any]] = {}
    for name, node_vars in result.items():
        all_nodes[name] = dict(node_vars)
        node_vars[VK_NODES] = all_nodes
    return result


def prepare_link_vars(link: Link, vars_a: dict, vars_b: dict) -> None:
    """Fill the variables of both ends of a link; raises ValueError on bad input."""
    far_a: dict[str, Any] = {VK_NODE_NAME: link.b.node.short_name}
    far_b: dict[str, Any] = {VK_NODE_NAME: link.a.node.short_name}
    vars_a[VK_FAR_END] = far_a
    vars_b[VK_FAR_END] = far_b

    def add_values(key: str, value_a: Any, value_b: Any) -> None:
        vars_a[key] = value_a
        far_a[key] = value_b
        vars_b[key] = value_b
        far_b[key] = value_a

    for key, value in link.vars.items():
        if key in (VK_FAR_END, VK_NODE_NAME):
            raise ValueError(f"{link}: reserved variable name '{key}' found")
        if isinstance(value, (list, tuple)):
            if len(value) != 2:
                raise ValueError(
                    f"{link}: variable {key} should contain 2 elements, "
                    f"found {len(value)}: {value}"
                )
            add_values(key, value[0], value[1])
            continue
        if key == VK_LINK_IP:
            text = _text(value)
            try:
                far = ip_far_end_s(text)
            except ValueError as err:
                raise ValueError(f"{link}: {err}") from err
            add_values(key, text, far)
            continue
        add_values(key, value, value)

    for key, func in ((VK_LINK_IP, link_ip), (VK_LINK_NAME, link_name)):
        if key in vars_a:
            continue
        try:
            value_a, value_b = func(link)
        except ValueError as err:
            raise ValueError(f"{link}: {err}") from err
        if value_a:
            add_values(key, value_a, value_b)


def link_name(link: Link) -> tuple[str, str]:
    """Names of both link ends, from the far-end node names and the link number."""
    suffix = ""
    if VK_LINK_NUM in link.vars:
        suffix = f"_{_text(link.vars[VK_LINK_NUM])}"
    return f"to_{link.b.node.short_name}{suffix}", f"to_{link.a.node.short_name}{suffix}"


def link_ip(link: Link) -> tuple[str, str]:
    """Derive a /31 pair of link addresses from the system IPs of both nodes.

    Returns two empty strings when either node has no system IP.
    """
    vars_a = link.a.node.config_vars
    vars_b = link.b.node.config_vars
    has_a = VK_SYSTEM_IP in vars_a
    has_b = VK_SYSTEM_IP in vars_b
    if has_a != has_b:
        log.warning(
            "to auto-generate link IPs, a %s variable is required on all nodes", VK_SYSTEM_IP
        )
    if not (has_a and has_b):
        return "", ""
    try:
        sys_a = _parse_prefix(_text(vars_a[VK_SYSTEM_IP]))
    except ValueError as err:
        raise ValueError(
            f"no 'ip' on link & the '{VK_SYSTEM_IP}' of {link.a.node.short_name}: {err}"
        ) from err
    try:
        sys_b = _parse_prefix(_text(vars_b[VK_SYSTEM_IP]))
    except ValueError as err:
        raise ValueError(
            f"no 'ip' on link & the '{VK_SYSTEM_IP}' of {link.b.node.short_name}: {err}"
        ) from err

    o4 = 0
    if VK_LINK_NUM in link.vars:
        raw = link.vars[VK_LINK_NUM]
        try:
            o4 = int(_text(raw))
        except ValueError:
            log.warning("%s is expected to contain a number, got %s", VK_LINK_NUM, raw)
            o4 = 0
        o4 *= 2

    o2, o3 = ip_last_octet(sys_a.ip), ip_last_octet(sys_b.ip)
    if o3 < o2:
        o2, o3, o4 = o3, o2, o4 + 1
    try:
        ip_a = _parse_prefix(f"1.{o2}.{o3}.{o4}/31")
    except ValueError as err:
        raise ValueError(f"could not create link IP from {VK_SYSTEM_IP}: {err}") from err
    far = ip_far_end(ip_a)
    if far is None:
        raise ValueError(f"could not create link IP from {VK_SYSTEM_IP}: {ip_a}")
    return str(ip_a), str(far)


def ip_last_octet(addr) -> int:
    """The last dotted (or colon-separated) group of an address as a number; 0 if not numeric."""
    text = str(addr)
    idx = text.rfind(".")
    if idx < 0:
        idx = text.rfind(":")
    tail = text[idx + 1:]
    try:
        return int(tail, 10)
    except ValueError:
        log.error("last octet %s from IP %s not a string", tail, text)
        return 0


def _parse_prefix(text: str) -> Interface:
    _, sep, bits = text.partition("/")
    if not sep or not bits.isdigit():
        raise ValueError(f'netip.ParsePrefix("{text}"): no valid prefix length')
    return ipaddress.ip_interface(text)


def _step(addr: Address, delta: int) -> Address | None:
    try:
        return addr + delta
    except ValueError:
        return None


def _contains(prefix: Interface, addr: Address | None) -> bool:
    return addr is not None and addr in prefix.network


def ip_far_end(prefix: Interface) -> Interface | None:
    """The first free address of the prefix next to the given one, or None."""
    addr = prefix.ip
    bits = prefix.network.prefixlen
    is4 = addr.version == 4
    if is4 and bits == 32:
        return None
    prev = _step(addr, -1)
    nxt = _step(addr, 1)
    if is4 and bits <= 30:
        if not _contains(prefix, nxt) or not _contains(prefix, prev):
            return None
        if not _contains(prefix, _step(nxt, 1)):
            nxt = prev
    if not _contains(prefix, nxt):
        nxt = prev
    if not _contains(prefix, nxt):
        return None
    return ipaddress.ip_interface(f"{nxt}/{bits}")


def ip_far_end_s(text: str) -> str:
    """String form of :func:`ip_far_end`; raises ValueError when there is none."""
    try:
        prefix = _parse_prefix(text)
    except ValueError as err:
        raise ValueError(f"invalid ip {text}") from err
    far = ip_far_end(prefix)
    if far is None:
        raise ValueError(f"invalid ip {text} - invalid Prefix")
    return str(far)


def get_template_names_in_dirs(paths) -> list[str]:
    """Base names of ``<name>__<role>.tmpl`` files in the given directories, not recursing."""
    names: list[str] = []
    for path in paths:
        for fn in sorted(glob.glob(os.path.join(path, "*__*.tmpl"))):
            name = os.path.basename(fn).split("__")[0]
            if names and names[-1] == name:
                continue
            names.append(name)
    if not names:
        raise FileNotFoundError(
            "no templates files were found in specified paths: [" + " ".join(paths) + "]"
        )
    return names