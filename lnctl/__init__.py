"""Command line control for lnd nodes."""

from .codec import (
    HASH_LENGTH,
    PUBKEY_LENGTH,
    CodecError,
    InvalidEncodingError,
    InvalidLengthError,
    decode_fixed_length,
)
from .graph import ChannelGraph, GraphEdge, GraphNode, build_graph_description
from .lifecycle import (
    ChannelClosed,
    ChannelOpened,
    ChannelPending,
    ClosePending,
    CloseChannelRequest,
    OpenChannelRequest,
    StreamOutcome,
    StreamState,
    close_channel,
    consume_updates,
    open_channel,
)
from .normalize import InvalidCapacityError, NormalizationError, build_normalizer
from .render import (
    CommandResult,
    CommandRunner,
    RenderFailedError,
    SubprocessRunner,
    ViewerFailedError,
    render_graph,
)

__all__ = [
    "HASH_LENGTH",
    "PUBKEY_LENGTH",
    "CodecError",
    "InvalidEncodingError",
    "InvalidLengthError",
    "decode_fixed_length",
    "ChannelGraph",
    "GraphEdge",
    "GraphNode",
    "build_graph_description",
    "ChannelClosed",
    "ChannelOpened",
    "ChannelPending",
    "ClosePending",
    "CloseChannelRequest",
    "OpenChannelRequest",
    "StreamOutcome",
    "StreamState",
    "close_channel",
    "consume_updates",
    "open_channel",
    "InvalidCapacityError",
    "NormalizationError",
    "build_normalizer",
    "CommandResult",
    "CommandRunner",
    "RenderFailedError",
    "SubprocessRunner",
    "ViewerFailedError",
    "render_graph",
]
