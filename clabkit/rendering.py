"""Rendering of per-node configuration templates and reading of topology variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import jinja2
import yaml

from clabkit.linkvars import VK_NODES, VK_ROLE, get_template_names_in_dirs
from clabkit.model import NodeConfig

log = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = "/etc/containerlab/templates/"
VAR_FILE_SUFFIX = "_vars"
_VAR_FILE_EXTS = (".yaml", ".yml", ".json")


def _plain(value: Any) -> Any:
    """Rebuild mappings and sequences as fresh objects so YAML writes no aliases."""
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass
class RenderedConfig:
    """A node, the variables its templates see, and the rendered snippets."""

    target: NodeConfig
    vars: dict[str, Any] = field(default_factory=dict)
    data: list[str] = field(default_factory=list)
    info: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.target.short_name}: [{' '.join(self.info)}]"

    def format(self, show_vars: bool, rendered: bool, debug_count: int = 0) -> str:
        """Describe the node's variables and/or rendered templates.

        Below a debug count of 3 the other nodes in the variables are abbreviated.
        """
        name = self.target.short_name
        out = [name]
        if show_vars:
            out.append(" vars = ")
            shown = dict(self.vars)
            nodes = shown.get(VK_NODES)
            if debug_count < 3 and isinstance(nodes, Mapping):
                shown[VK_NODES] = "{" + "".join(f"{k}: {{...}}, " for k in sorted(nodes)) + "}"
            try:
                out.append(
                    yaml.safe_dump(_plain(shown), default_flow_style=False, sort_keys=True)
                )
            except yaml.YAMLError as err:
                log.warning("error printing vars for node %s: %s", name, err)
                out.append(str(err))
        if rendered:
            for tmpl_name, conf in zip(self.info, self.data):
                out.append(f"\n  Template {tmpl_name} for {name} = [[")
                out.extend(f"\n     {line}" for line in conf.split("\n"))
                out.append("\n  ]]")
        return "".join(out)


def _configs(configs) -> Iterable[RenderedConfig]:
    return configs.values() if isinstance(configs, Mapping) else configs


def render_all(configs, template_names=None, template_paths=None) -> list[str]:
    """Render ``<name>__<role>.tmpl`` for every config and template name.

    ``@`` in the paths stands for the installed template directory; where a
    template exists in several paths the last one wins. Without template
    names, every name found in the paths is used. Returns the names used.
    """
    paths = [
        DEFAULT_TEMPLATE_PATH if p == "@" else p for p in (template_paths or ["@"])
    ]
    names = list(template_names or [])
    if not names:
        names = get_template_names_in_dirs(paths)
        log.info("No template names specified (-l) using: %s", ", ".join(names))

    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(list(reversed(paths))),
        autoescape=False,
        keep_trailing_newline=True,
    )

    for nc in _configs(configs):
        role = nc.vars.get(VK_ROLE, nc.target.kind)
        for base in names:
            tmpl_name = f"{base}__{role}.tmpl"
            log.debug("Looking up template %s", tmpl_name)
            try:
                template = env.get_template(tmpl_name)
            except jinja2.TemplateNotFound:
                log.debug("No template found for %s; skipping..", nc.target.short_name)
                continue
            try:
                text = template.render(nc.vars)
            except Exception:
                log.info("%s", nc.format(True, True))
                raise
            data = text.strip("\n \t\r").replace("\n\n\n", "\n\n")
            nc.data.append(data)
            nc.info.append(tmpl_name)
    return names


def read_template_variables(topo: str, vars_file: str = "") -> Any:
    """Load the variables of a topology template.

    Without an explicit file, ``<topo>_vars`` with a .yaml, .yml or .json
    extension is looked for next to the topology; None if there is none.
    """
    if not vars_file:
        base = os.path.splitext(topo)[0]
        for ext in _VAR_FILE_EXTS:
            candidate = f"{base}{VAR_FILE_SUFFIX}{ext}"
            if os.path.exists(candidate):
                vars_file = candidate
                break
        else:
            return None
    with open(vars_file, encoding="utf-8") as f:
        return yaml.safe_load(f)