import pytest

from clabkit.model import (
    CLAB_ENV_INTFS,
    CONTAINERLAB_LABEL,
    DEFAULT_VETH_LINK_MTU,
    NODE_GROUP_LABEL,
    NODE_KIND_LABEL,
    NODE_LAB_DIR_LABEL,
    NODE_NAME_LABEL,
    NODE_TYPE_LABEL,
    TOPO_FILE_LABEL,
    Endpoint,
    Link,
    LinkConfig,
    NodeConfig,
    TopologyError,
    add_default_labels,
    check_endpoint,
    get_short_name,
    labels_to_env_vars,
    long_name,
    set_link_count_env,
    to_env_key,
    verify_duplicate_addresses,
    verify_links,
    verify_root_netns_interface_uniqueness,
)


def test_verify_links_two_duplicates():
    links = [
        LinkConfig(["lin1:eth1", "lin2:eth1"]),
        LinkConfig(["lin1:eth1", "lin2:eth2"]),
        LinkConfig(["lin3:eth1", "lin2:eth2"]),
    ]
    with pytest.raises(TopologyError) as exc:
        verify_links(links)
    assert str(exc.value) == (
        'endpoints ["lin1:eth1" "lin2:eth2"] appeared more than once '
        "in the links section of the topology file"
    )


def test_verify_links_no_duplicates():
    links = [LinkConfig(["node1:e1-1", "node2:e1-1"])]
    verify_links(links)
    assert links[0].endpoints == ["node1:e1-1", "node2:e1-1"]


@pytest.mark.parametrize("endpoint", ["node1", "a:b:c", "node1:eth0"])
def test_check_endpoint_errors(endpoint):
    with pytest.raises(TopologyError):
        check_endpoint(endpoint)


def test_check_endpoint_eth0_message():
    with pytest.raises(TopologyError, match="eth0 interface can't be used"):
        check_endpoint("n1:eth0")


@pytest.mark.parametrize(
    "prefix, expected",
    [("clab", "clab-lab-n1"), ("", "n1"), ("__lab-name", "lab-n1"), ("x", "x-lab-n1")],
)
def test_long_name(prefix, expected):
    assert long_name(prefix, "lab", "n1") == expected


def test_get_short_name():
    assert get_short_name("topo1", "clab", "clab-topo1-node1") == "node1"
    assert get_short_name("topo1", "", "anything") == "anything"


def test_get_short_name_error():
    with pytest.raises(TopologyError, match="failed to parse container name"):
        get_short_name("topo1", "clab", "other-container")


def test_verify_duplicate_addresses():
    nodes = {
        "a": NodeConfig("a", mgmt_ipv4_address="172.20.20.2"),
        "b": NodeConfig("b", mgmt_ipv4_address="172.20.20.2"),
    }
    with pytest.raises(TopologyError, match="172.20.20.2 appeared more than once"):
        verify_duplicate_addresses(nodes)


def test_verify_duplicate_addresses_unique_and_empty():
    nodes = [
        NodeConfig("a", mgmt_ipv4_address="172.20.20.2"),
        NodeConfig("b"),
        NodeConfig("c"),
        NodeConfig("d", mgmt_ipv6_address="2001:172:20:20::2"),
    ]
    verify_duplicate_addresses(nodes)
    assert [n.short_name for n in nodes] == ["a", "b", "c", "d"]


def _link(kind_a, name_a, kind_b, name_b):
    a = NodeConfig("br1" if kind_a == "bridge" else "n1", kind=kind_a)
    b = NodeConfig("n2", kind=kind_b)
    return Link(Endpoint(a, name_a), Endpoint(b, name_b))


def test_root_netns_duplicate_detected():
    links = {
        0: _link("bridge", "br1-eth1", "linux", "eth1"),
        1: _link("host", "br1-eth1", "linux", "eth2"),
    }
    with pytest.raises(TopologyError, match="has already been used"):
        verify_root_netns_interface_uniqueness(links)


def test_root_netns_non_root_duplicates_allowed():
    links = [
        _link("linux", "eth1", "linux", "eth1"),
        _link("bridge", "p1", "linux", "eth1"),
    ]
    verify_root_netns_interface_uniqueness(links)
    assert links[0].mtu == DEFAULT_VETH_LINK_MTU


def test_endpoint_name_too_long():
    with pytest.raises(TopologyError, match="exceeds maximum length of 15"):
        Endpoint(NodeConfig("n1"), "a" * 16)


def test_default_labels_and_env():
    node = NodeConfig(
        "node2",
        kind="srl",
        node_type="ixrd2",
        lab_dir="/labs/clab-topo1/node2",
        labels={"node-label": "value"},
    )
    add_default_labels(node, "topo1", "/labs/topo1.yml")
    assert node.labels == {
        CONTAINERLAB_LABEL: "topo1",
        NODE_NAME_LABEL: "node2",
        NODE_KIND_LABEL: "srl",
        NODE_TYPE_LABEL: "ixrd2",
        NODE_GROUP_LABEL: "",
        NODE_LAB_DIR_LABEL: "/labs/clab-topo1/node2",
        TOPO_FILE_LABEL: "/labs/topo1.yml",
        "node-label": "value",
    }
    labels_to_env_vars(node)
    for key, value in node.labels.items():
        assert node.env["CLAB_LABEL_" + to_env_key(key)] == value


def test_to_env_key():
    assert to_env_key("clab-node-name") == "CLAB_NODE_NAME"
    assert to_env_key("a.b c") == "A_B_C"


def test_set_link_count_env():
    node = NodeConfig("n1", env={"env1": "val1", CLAB_ENV_INTFS: "9"})
    node.endpoints.append(Endpoint(node, "e1"))
    node.endpoints.append(Endpoint(node, "e2"))
    set_link_count_env(node)
    assert node.env == {"env1": "val1", CLAB_ENV_INTFS: "2"}


def test_link_str():
    link = _link("linux", "e1", "linux", "e2")
    assert str(link) == "link [n1:e1, n2:e2]"