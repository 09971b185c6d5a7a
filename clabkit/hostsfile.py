"""Maintenance of the lab's block of entries in a hosts file."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field

HOSTS_FILE = "/etc/hosts"
_ENTRY_PREFIX = "###### CLAB-{}-START ######"
_ENTRY_POSTFIX = "###### CLAB-{}-END ######"


@dataclass
class ContainerInfo:
    """The parts of a running container that the hosts file needs."""

    names: list[str] = field(default_factory=list)
    ipv4_address: str = ""
    ipv6_address: str = ""


def generate_hosts_entries(containers: Iterable[ContainerInfo], lab_name: str) -> str:
    """Build the marked block of name/address lines; IPv4 lines come first."""
    v4: list[str] = []
    v6: list[str] = []
    for cont in containers:
        if not cont.names:
            continue
        if cont.ipv4_address:
            v4.append(f"{cont.ipv4_address}\t{cont.names[0]}\n")
        if cont.ipv6_address:
            v6.append(f"{cont.ipv6_address}\t{cont.names[0]}\n")
    return (
        _ENTRY_PREFIX.format(lab_name) + "\n"
        + "".join(v4)
        + "".join(v6)
        + _ENTRY_POSTFIX.format(lab_name) + "\n"
    )


def append_hosts_file_entries(
    containers: Iterable[ContainerInfo], lab_name: str, path: str = HOSTS_FILE
) -> None:
    """Replace the lab's block in the hosts file with fresh entries."""
    if not lab_name:
        raise ValueError("missing lab name")
    if not os.path.exists(path):
        with open(path, "w", encoding="utf-8") as f:
            f.write("127.0.0.1\tlocalhost\n")
    delete_entries_from_hosts_file(lab_name, path)
    data = generate_hosts_entries(containers, lab_name)
    if not data:
        return
    with open(path, "a", encoding="utf-8") as f:
        f.write(data)


def delete_entries_from_hosts_file(lab_name: str, path: str = HOSTS_FILE) -> None:
    """Remove the lab's block from the hosts file.

    Raises ValueError and leaves the file untouched if the block has no end marker.
    """
    if not lab_name:
        raise ValueError("missing containerlab name")
    prefix = _ENTRY_PREFIX.format(lab_name)
    postfix = _ENTRY_POSTFIX.format(lab_name)
    with open(path, "r+", encoding="utf-8") as f:
        kept: list[str] = []
        skipping = False
        for line in f:
            stripped = line.strip()
            if stripped == postfix:
                skipping = False
                continue
            if stripped == prefix or skipping:
                skipping = True
                continue
            kept.append(line)
        if skipping:
            raise ValueError(f"issue cleaning up {path} file. Please do so manually")
        f.seek(0)
        f.truncate()
        f.write("".join(kept))