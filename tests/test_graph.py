import pytest

from lnctl.codec import InvalidLengthError
from lnctl.graph import ChannelGraph, build_graph_description, format_btc, format_plain
from lnctl.rpc_client import RPCTransportError

NODE_A = "02" + "ab" * 32
NODE_B = "03" + "cd" * 32
NODE_C = "02" + "ef" * 32


def _graph_payload() -> dict:
    return {
        "nodes": [
            {"pub_key": NODE_A, "alias": "alice"},
            {"pub_key": NODE_B, "alias": "bob"},
            {"pub_key": NODE_C, "alias": "carol"},
        ],
        "edges": [
            {"channel_id": "123456789012", "node1_pub": NODE_A, "node2_pub": NODE_B, "capacity": "100000"},
            {"channel_id": "987654321098", "node1_pub": NODE_B, "node2_pub": NODE_C, "capacity": "10000000"},
        ],
    }


def _split_declarations(source: str) -> tuple[list[str], list[str]]:
    body = [line.strip() for line in source.strip().splitlines()[1:-1]]
    edges = [line for line in body if " -- " in line]
    nodes = [line for line in body if " -- " not in line]
    return nodes, edges


def test_description_declares_every_node_and_edge() -> None:
    graph = ChannelGraph.from_rpc(_graph_payload())
    source = build_graph_description(graph).source

    assert source.startswith("graph LightningNetwork {")
    nodes, edges = _split_declarations(source)
    assert len(nodes) == 3
    assert len(edges) == 2
    assert '"02abababab"' in nodes


def test_edge_attributes_carry_weight_label_and_thickness() -> None:
    graph = ChannelGraph.from_rpc(_graph_payload())
    _, edges = _split_declarations(build_graph_description(graph).source)

    first, second = edges
    assert first.startswith('"02abababab" -- "03cdcdcdcd"')
    assert 'label="cid:1234567"' in first
    assert "weight=0.001" in first
    assert "penwidth=0" in first
    assert 'label="cid:9876543"' in second
    assert "weight=0.1" in second
    assert "penwidth=3" in second


def test_graph_without_edges_skips_normalization() -> None:
    payload = {"nodes": [{"pub_key": NODE_A}], "edges": []}
    source = build_graph_description(ChannelGraph.from_rpc(payload)).source
    nodes, edges = _split_declarations(source)
    assert len(nodes) == 1
    assert edges == []


def test_from_rpc_validates_public_keys() -> None:
    with pytest.raises(InvalidLengthError):
        ChannelGraph.from_rpc({"nodes": [{"pub_key": NODE_A[:20]}]})


@pytest.mark.parametrize(
    "sat, expected",
    [(100_000_000, "1"), (5_000_000, "0.05"), (1, "0.00000001"), (2_100_000_000, "21")],
)
def test_format_btc_has_no_exponent(sat: int, expected: str) -> None:
    assert format_btc(sat) == expected


def test_format_plain_has_no_exponent() -> None:
    assert format_plain(1e-05) == "0.00001"
    assert format_plain(1.5) == "1.5"
    assert format_plain(3.0) == "3"


@pytest.mark.parametrize(
    "edge",
    [
        {"channel_id": "1", "node1_pub": NODE_A, "node2_pub": NODE_B, "capacity": "lots"},
        {"channel_id": "not-a-number", "node1_pub": NODE_A, "node2_pub": NODE_B, "capacity": "1000"},
        {"channel_id": "1", "node2_pub": NODE_B, "capacity": "1000"},
    ],
)
def test_from_rpc_rejects_malformed_edges(edge: dict) -> None:
    with pytest.raises(RPCTransportError) as excinfo:
        ChannelGraph.from_rpc({"nodes": [], "edges": [edge]})
    assert "malformed describegraph reply" in str(excinfo.value)
