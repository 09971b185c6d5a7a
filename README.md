# clabkit

Building blocks for running container-based network labs from Python.

clabkit covers the parts of a lab tool that sit between the topology
definition and the container runtime:

- **Node ordering** – `clabkit.deps.DependencyManager` records which nodes
  wait for which, refuses cyclic dependency graphs with `DependencyError`,
  and lets threads block until a node's prerequisites have signalled that
  they are done. `clabkit.scheduling` builds those dependencies from node
  configurations (static management IPs first, `wait-for` lists, shared
  `container:<name>` network namespaces, one runtime run serially) and has a
  `Scheduler` class that hands `LabNode` objects to a pool of worker threads
  for creation (`create_nodes`) and removal (`delete_nodes`).
- **Topology model and checks** – `clabkit.model` holds `NodeConfig`,
  `Endpoint`, `Link` and `LinkConfig`, and checks endpoint syntax, duplicate
  links, duplicate management addresses and root-namespace interface names,
  raising `TopologyError` when something is wrong. It also adds the default
  node labels (`add_default_labels`) and exposes labels as `CLAB_LABEL_*`
  environment variables (`labels_to_env_vars`).
- **Exec results** – `clabkit.execution` parses commands into `ExecCmd`,
  stores outcomes in `ExecResult` and `ExecCollection`, and dumps them as
  plain text or JSON.
- **Templating variables** – `clabkit.linkvars` prepares per-node and
  per-link variables (`prepare_vars`, `prepare_link_vars`), works out the far
  end of point-to-point prefixes, and derives link names and link IPs from
  node system IPs.
- **Rendering** – `clabkit.rendering.render_all` renders
  `<name>__<role>.tmpl` Jinja templates into `RenderedConfig` objects;
  `read_template_variables` loads a topology's `_vars` file.
- **Generated files** – `clabkit.inventory` writes an Ansible inventory,
  `clabkit.hostsfile` maintains a lab's marked block in a hosts file,
  `clabkit.graph` writes a Graphviz DOT file (and a PNG when the `dot`
  program is installed), and `clabkit.authz` collects public keys into an
  `authorized_keys` file.
- **Writing configuration** – `clabkit.transport.base.write_config` connects
  a transport object, writes each rendered snippet and closes it again,
  wrapping failures in `TransportError`.

## Requirements

Python 3.10 or later, with PyYAML and Jinja2.

## Examples

### Ordering node creation

```python
from clabkit.deps import DependencyManager, DependencyError

dm = DependencyManager()
for name in ("spine1", "leaf1", "leaf2"):
    dm.add_node(name)

# both leaves wait for the spine
dm.add_dependency("spine1", "leaf1")
dm.add_dependency("spine1", "leaf2")

dm.check_acyclicity()   # raises DependencyError on a cycle
print(dm)
# spine1 -> [  ]
# leaf1 -> [ spine1 ]
# leaf2 -> [ spine1 ]
```

A thread deploying `leaf1` calls `dm.wait_for_node_dependencies("leaf1")`,
which blocks until another thread has called `dm.signal_done("spine1")`.

`is_acyclic` checks a plain dependee-to-dependers mapping:

```python
from clabkit.deps import is_acyclic

is_acyclic({"node1": ["node2"], "node2": []})         # True
is_acyclic({"node1": ["node2"], "node2": ["node1"]})  # False
```

### Exec output formats

```python
from clabkit.execution import ExecCmd, parse_exec_output_format

parse_exec_output_format("table")   # ExecFormat.PLAIN
parse_exec_output_format("JSON")    # ExecFormat.JSON

cmd = ExecCmd.from_string("ip -br addr show")
cmd.cmd_string()                    # "ip -br addr show"
```

Unknown formats raise `ValueError`.

### Point-to-point addressing

```python
from clabkit.linkvars import ip_far_end_s

ip_far_end_s("10.0.0.0/31")   # "10.0.0.1/31"
ip_far_end_s("10.0.0.1/30")   # "10.0.0.2/30"
```

Addresses with no usable far end, such as the network address of a /30,
raise `ValueError`.

### Writing configuration through a transport

`write_config` works with any object that has `connect(host)`,
`write(snippet, info)` and `close()`:

```python
from clabkit.transport.base import write_config, TransportError

class PrintTransport:
    def connect(self, host):
        print("connected to", host)

    def write(self, snippet, info):
        print(f"[{info}]\n{snippet}")

    def close(self):
        print("closed")

try:
    write_config(
        PrintTransport(),
        "clab-lab1-leaf1",
        ["set / system name host-name leaf1"],
        ["base__srl.tmpl"],
    )
except TransportError as exc:
    print(f"config push failed: {exc}")
```

`data` and `info` must have the same length.

## What clabkit does not do

- It ships no transport that talks to devices: there is no SSH client or
  device prompt handling, only `write_config` and `TransportError` for
  transports you provide.
- It has no command-line program.
- It does not talk to a container runtime, create networks or veth links,
  or generate certificates; `LabNode` actions and the `Scheduler`'s
  `status_getter` are supplied by the caller.
- It does not parse a whole topology file into nodes and links; the model
  classes are filled in by the caller.

## Running the tests

The test suite uses pytest; install the `test` extra to get it.