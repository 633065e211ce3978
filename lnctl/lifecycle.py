"""Channel open/close lifecycle streams.

Opening or closing a channel is a multi-phase operation: the node first
reports that a transaction has been broadcast (pending) and later that it has
confirmed (terminal). Both RPCs stream those phases as tagged updates. The
update kinds form a small closed set, modelled below as frozen dataclasses,
and a single consumer drives either stream.
"""

from __future__ import annotations

import enum
import json
import logging
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from .codec import (
    HASH_LENGTH,
    InvalidEncodingError,
    PUBKEY_LENGTH,
    decode_rpc_bytes,
    encode_rpc_bytes,
    txid_from_str,
    txid_to_str,
)

logger = logging.getLogger(__name__)

Emitter = Callable[[Dict[str, Any]], None]


class UpdatePhase(enum.Enum):
    PENDING = "pending"
    TERMINAL = "terminal"


class StreamState(enum.Enum):
    AWAITING_UPDATE = "awaiting_update"
    AWAITING_TERMINAL = "awaiting_terminal"
    DONE = "done"


@dataclass(frozen=True)
class ChannelPending:
    """The funding transaction has been broadcast."""

    funding_txid: bytes
    phase = UpdatePhase.PENDING

    def to_jsonable(self) -> Dict[str, Any]:
        return {"funding_txid": txid_to_str(self.funding_txid)}


@dataclass(frozen=True)
class ChannelOpened:
    """The funding transaction has reached the requested confirmations."""

    funding_txid: bytes
    output_index: int
    phase = UpdatePhase.TERMINAL

    def to_jsonable(self) -> Dict[str, Any]:
        return {"channel_point": f"{txid_to_str(self.funding_txid)}:{self.output_index}"}


@dataclass(frozen=True)
class ClosePending:
    """The closing transaction has been broadcast."""

    closing_txid: bytes
    phase = UpdatePhase.PENDING

    def to_jsonable(self) -> Dict[str, Any]:
        return {"closing_txid": txid_to_str(self.closing_txid)}


@dataclass(frozen=True)
class ChannelClosed:
    """The closing transaction has confirmed."""

    closing_txid: bytes
    phase = UpdatePhase.TERMINAL

    def to_jsonable(self) -> Dict[str, Any]:
        return {"closing_txid": txid_to_str(self.closing_txid)}


OpenUpdate = Union[ChannelPending, ChannelOpened]
CloseUpdate = Union[ClosePending, ChannelClosed]
LifecycleUpdate = Union[ChannelPending, ChannelOpened, ClosePending, ChannelClosed]


@dataclass
class StreamOutcome:
    state: StreamState
    lines: List[Dict[str, Any]] = field(default_factory=list)


def emit_json_line(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload), flush=True)


def consume_updates(
    updates: Iterable[Optional[LifecycleUpdate]],
    *,
    block: bool,
    emit: Emitter = emit_json_line,
) -> StreamOutcome:
    """Drive a lifecycle stream until it is done or the caller may stop.

    ``None`` entries stand for frames with no known update and are skipped.
    When ``block`` is false the function returns right after the pending
    update without pulling another item from ``updates``. Errors raised while
    iterating propagate unchanged.
    """

    outcome = StreamOutcome(StreamState.AWAITING_UPDATE)
    for update in updates:
        if update is None:
            continue
        if not isinstance(update, (ChannelPending, ChannelOpened, ClosePending, ChannelClosed)):
            raise TypeError(f"Unexpected lifecycle update: {update!r}")

        line = update.to_jsonable()
        emit(line)
        outcome.lines.append(line)

        if update.phase is UpdatePhase.PENDING:
            outcome.state = StreamState.AWAITING_TERMINAL
            if not block:
                logger.debug("Pending update received; not waiting for confirmation")
                return outcome
        else:
            outcome.state = StreamState.DONE
            return outcome

    logger.debug("Update stream ended in state %s", outcome.state.value)
    return outcome


def _channel_point_txid(channel_point: Dict[str, Any]) -> bytes:
    if "funding_txid_bytes" in channel_point:
        return decode_rpc_bytes(channel_point["funding_txid_bytes"], HASH_LENGTH, label="funding_txid")
    if "funding_txid_str" in channel_point:
        return txid_from_str(channel_point["funding_txid_str"])
    raise InvalidEncodingError(f"channel point carries no funding txid: {channel_point!r}")


def parse_open_update(frame: Dict[str, Any]) -> Optional[OpenUpdate]:
    """Map an OpenStatusUpdate frame onto its variant."""

    if "chan_pending" in frame:
        pending = frame["chan_pending"] or {}
        return ChannelPending(decode_rpc_bytes(pending.get("txid"), HASH_LENGTH, label="funding_txid"))
    if "chan_open" in frame:
        channel_point = (frame["chan_open"] or {}).get("channel_point") or {}
        return ChannelOpened(
            funding_txid=_channel_point_txid(channel_point),
            output_index=int(channel_point.get("output_index", 0)),
        )
    logger.debug("Ignoring open channel update %s", sorted(frame))
    return None


def parse_close_update(frame: Dict[str, Any]) -> Optional[CloseUpdate]:
    """Map a CloseStatusUpdate frame onto its variant."""

    if "close_pending" in frame:
        pending = frame["close_pending"] or {}
        return ClosePending(decode_rpc_bytes(pending.get("txid"), HASH_LENGTH, label="closing_txid"))
    if "chan_close" in frame:
        closed = frame["chan_close"] or {}
        return ChannelClosed(decode_rpc_bytes(closed.get("closing_txid"), HASH_LENGTH, label="closing_txid"))
    logger.debug("Ignoring close channel update %s", sorted(frame))
    return None


@dataclass
class OpenChannelRequest:
    """Parameters for opening a channel to one peer.

    Exactly one of ``node_pubkey`` and ``target_peer_id`` identifies the peer.
    """

    local_funding_amount: int
    push_sat: int = 0
    num_confs: int = 0
    node_pubkey: bytes | None = None
    target_peer_id: int | None = None

    def __post_init__(self) -> None:
        if self.node_pubkey is not None and self.target_peer_id is not None:
            raise ValueError(
                "node_pubkey and target_peer_id cannot be set at the same time, only one can be specified"
            )
        if self.node_pubkey is None and self.target_peer_id is None:
            raise ValueError("either node_pubkey or target_peer_id must be specified")
        if self.node_pubkey is not None and len(self.node_pubkey) != PUBKEY_LENGTH:
            raise ValueError(f"node_pubkey must be {PUBKEY_LENGTH} bytes")
        if self.local_funding_amount <= 0:
            raise ValueError("local_funding_amount must be positive")
        if self.push_sat < 0 or self.num_confs < 0:
            raise ValueError("push_sat and num_confs must not be negative")

    def to_jsonable(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "local_funding_amount": str(self.local_funding_amount),
            "push_sat": str(self.push_sat),
            "num_confs": self.num_confs,
        }
        if self.node_pubkey is not None:
            body["node_pubkey"] = encode_rpc_bytes(self.node_pubkey)
        else:
            body["target_peer_id"] = self.target_peer_id
        return body


@dataclass
class CloseChannelRequest:
    """Identifies a channel by its funding outpoint."""

    funding_txid: bytes
    output_index: int
    force: bool = False

    def __post_init__(self) -> None:
        if len(self.funding_txid) != HASH_LENGTH:
            raise ValueError(f"funding_txid must be {HASH_LENGTH} bytes")
        if self.output_index < 0:
            raise ValueError("output_index must not be negative")


def _drive(
    frames: Iterator[Dict[str, Any]],
    parse: Callable[[Dict[str, Any]], Optional[LifecycleUpdate]],
    *,
    block: bool,
    emit: Emitter,
) -> StreamOutcome:
    # Closing the frame generator releases the HTTP response on early exit.
    with closing(frames):
        return consume_updates((parse(frame) for frame in frames), block=block, emit=emit)


def open_channel(
    client: Any,
    request: OpenChannelRequest,
    *,
    block: bool = False,
    emit: Emitter = emit_json_line,
) -> StreamOutcome:
    """Open a channel and report its progress."""

    frames = client.open_channel(request.to_jsonable())
    return _drive(frames, parse_open_update, block=block, emit=emit)


def close_channel(
    client: Any,
    request: CloseChannelRequest,
    *,
    block: bool = False,
    emit: Emitter = emit_json_line,
) -> StreamOutcome:
    """Close a channel and report its progress."""

    frames = client.close_channel(
        txid_to_str(request.funding_txid), request.output_index, force=request.force
    )
    return _drive(frames, parse_close_update, block=block, emit=emit)
