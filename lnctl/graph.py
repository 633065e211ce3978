"""Channel graph entities and their DOT description."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List

import graphviz

from .codec import PUBKEY_LENGTH, CodecError, decode_fixed_length
from .normalize import build_normalizer
from .rpc_client import RPCTransportError

logger = logging.getLogger(__name__)

GRAPH_NAME = "LightningNetwork"
SATOSHI_PER_BTC = Decimal(100_000_000)
NUM_KEY_CHARS = 10
NUM_CHAN_ID_CHARS = 7
DEFAULT_SCALE_FACTOR = 3.0


def format_btc(capacity_sat: int) -> str:
    """Render satoshis as a BTC amount with no trailing zeros or exponent."""

    amount = (Decimal(capacity_sat) / SATOSHI_PER_BTC).normalize()
    return format(amount, "f")


def format_plain(value: float) -> str:
    """Shortest decimal form of ``value`` without scientific notation."""

    return format(Decimal(repr(value)).normalize(), "f")


@dataclass(frozen=True)
class GraphNode:
    pub_key: str

    @classmethod
    def from_hex(cls, pub_key: str) -> "GraphNode":
        decode_fixed_length(pub_key, PUBKEY_LENGTH, label="node public key")
        return cls(pub_key.lower())

    @property
    def display_id(self) -> str:
        # dot rejects bare identifiers that start like numbers; only a short
        # prefix is used and graphviz quotes it.
        return self.pub_key[:NUM_KEY_CHARS]


@dataclass(frozen=True)
class GraphEdge:
    node1: GraphNode
    node2: GraphNode
    capacity: int
    channel_id: int

    @property
    def channel_label(self) -> str:
        return f"cid:{str(self.channel_id)[:NUM_CHAN_ID_CHARS]}"


@dataclass
class ChannelGraph:
    """Nodes and edges of a ``describegraph`` reply."""

    nodes: List[GraphNode]
    edges: List[GraphEdge]

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "ChannelGraph":
        try:
            nodes = [GraphNode.from_hex(node["pub_key"]) for node in payload.get("nodes") or []]
            edges = [
                GraphEdge(
                    node1=GraphNode.from_hex(edge["node1_pub"]),
                    node2=GraphNode.from_hex(edge["node2_pub"]),
                    # int64/uint64 fields arrive as JSON strings.
                    capacity=int(edge.get("capacity", 0)),
                    channel_id=int(edge.get("channel_id", 0)),
                )
                for edge in payload.get("edges") or []
            ]
        except CodecError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise RPCTransportError(f"malformed describegraph reply: {exc!r}") from exc
        return cls(nodes=nodes, edges=edges)


def build_graph_description(
    graph: ChannelGraph, *, scale_factor: float = DEFAULT_SCALE_FACTOR
) -> graphviz.Graph:
    """Assemble an undirected DOT graph with one vertex per node and edge per channel.

    Edge ``weight`` is the capacity in BTC, ``label`` a truncated channel id
    and ``penwidth`` the capacity normalized onto ``[0, scale_factor]``.
    """

    canvas = graphviz.Graph(name=GRAPH_NAME)

    for node in graph.nodes:
        canvas.node(node.display_id)

    if not graph.edges:
        logger.debug("Graph has %d nodes and no edges", len(graph.nodes))
        return canvas

    normalize = build_normalizer(graph.edges, scale_factor)
    for edge in graph.edges:
        canvas.edge(
            edge.node1.display_id,
            edge.node2.display_id,
            penwidth=format_plain(normalize(edge.capacity)),
            weight=format_btc(edge.capacity),
            label=edge.channel_label,
        )

    logger.debug("Described %d nodes and %d edges", len(graph.nodes), len(graph.edges))
    return canvas
