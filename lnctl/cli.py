"""Command line interface for lnctl.

The CLI exposes the channel lifecycle commands and the channel graph
renderer on top of lnd's REST gateway.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from .codec import PUBKEY_LENGTH, CodecError, decode_fixed_length, txid_from_str
from .config import (
    ConfigurationError,
    load_lnd_config,
    load_render_config,
    set_default_config_path,
)
from .graph import ChannelGraph, build_graph_description
from .lifecycle import CloseChannelRequest, OpenChannelRequest, close_channel, open_channel
from .normalize import NormalizationError
from .render import RenderError, render_graph
from .rpc_client import LNDRestClient, RPCError, RPCTransportError

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Control plane for an lnd node")
    parser.add_argument("--config", help="Path to an lnctl YAML config file")
    parser.add_argument("--rpcserver", help="host:port of the lnd REST listener")
    parser.add_argument("--tlscertpath", help="Path to lnd's TLS certificate")
    parser.add_argument("--macaroonpath", help="Path to the macaroon used for authentication")
    https_group = parser.add_mutually_exclusive_group()
    https_group.add_argument(
        "--use-https",
        dest="use_https",
        action="store_const",
        const=True,
        help="Force HTTPS when contacting the node (default)",
    )
    https_group.add_argument(
        "--use-http",
        dest="use_https",
        action="store_const",
        const=False,
        help="Force plain HTTP when contacting the node",
    )
    parser.set_defaults(use_https=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    open_parser = subparsers.add_parser(
        "openchannel",
        help="open a channel to an existing peer",
        description=(
            "Attempt to open a new channel to an existing peer, optionally blocking until "
            "the channel is 'open'. Once the channel is open, a channel point (txid:vout) of "
            "the funding output is printed. --peer_id and --node_key are mutually exclusive."
        ),
    )
    open_parser.add_argument("--peer_id", type=int, help="the relative id of the peer to open a channel with")
    open_parser.add_argument(
        "--node_key",
        help="the identity public key of the target peer serialized in compressed format",
    )
    open_parser.add_argument(
        "--local_amt",
        type=int,
        required=True,
        help="the number of satoshis the wallet should commit to the channel",
    )
    open_parser.add_argument(
        "--push_amt",
        type=int,
        default=0,
        help="the number of satoshis to push to the remote side as part of the initial commitment state",
    )
    open_parser.add_argument(
        "--num_confs",
        type=int,
        default=0,
        help="the number of confirmations required before the channel is considered 'open'",
    )
    open_parser.add_argument("--block", action="store_true", help="block and wait until the channel is fully open")

    close_parser = subparsers.add_parser(
        "closechannel",
        help="close an existing channel",
        description="Close an existing channel either cooperatively or uncooperatively (forced).",
    )
    close_parser.add_argument("--funding_txid", required=True, help="the txid of the channel's funding transaction")
    close_parser.add_argument(
        "--output_index",
        type=int,
        default=0,
        help="the output index for the funding output of the funding transaction",
    )
    close_parser.add_argument("--force", action="store_true", help="attempt an uncooperative closure")
    close_parser.add_argument("--block", action="store_true", help="block until the channel is closed")

    graph_parser = subparsers.add_parser(
        "describegraph",
        help="print or render the known channel graph",
        description="Prints a human readable version of the known channel graph from the PoV of the node.",
    )
    graph_parser.add_argument(
        "--render",
        action="store_true",
        help="generate and display an image of the graph (written to graph.svg unless --output is given)",
    )
    graph_parser.add_argument("--output", help="Path of the rendered image")
    graph_parser.add_argument("--layout-cmd", help="Layout compiler executable (default: dot)")
    graph_parser.add_argument("--viewer", help="Command used to open the rendered image")
    graph_parser.add_argument("--no-view", action="store_true", help="Render the image without opening it")

    return parser


def _client_from_args(args: argparse.Namespace) -> LNDRestClient:
    overrides: dict[str, Any] = {
        "endpoint": args.rpcserver,
        "tls_cert_path": args.tlscertpath,
        "macaroon_path": args.macaroonpath,
        "use_https": args.use_https,
    }
    config = load_lnd_config(overrides={k: v for k, v in overrides.items() if v is not None})
    return LNDRestClient(config)


def _open_request_from_args(args: argparse.Namespace) -> OpenChannelRequest:
    if args.peer_id and args.node_key:
        raise CLIError(
            "both --peer_id and --node_key cannot be set at the same time, only one can be specified"
        )
    node_pubkey = None
    if not args.peer_id:
        if not args.node_key:
            raise CLIError("one of --peer_id or --node_key is required")
        node_pubkey = decode_fixed_length(args.node_key, PUBKEY_LENGTH, label="node_key")
    try:
        return OpenChannelRequest(
            local_funding_amount=args.local_amt,
            push_sat=args.push_amt,
            num_confs=args.num_confs,
            node_pubkey=node_pubkey,
            target_peer_id=args.peer_id or None,
        )
    except ValueError as exc:
        raise CLIError(str(exc)) from exc


def _close_request_from_args(args: argparse.Namespace) -> CloseChannelRequest:
    funding_txid = txid_from_str(args.funding_txid)
    try:
        return CloseChannelRequest(
            funding_txid=funding_txid,
            output_index=args.output_index,
            force=args.force,
        )
    except ValueError as exc:
        raise CLIError(str(exc)) from exc


def cmd_open_channel(args: argparse.Namespace) -> None:
    request = _open_request_from_args(args)
    client = _client_from_args(args)
    open_channel(client, request, block=args.block)


def cmd_close_channel(args: argparse.Namespace) -> None:
    request = _close_request_from_args(args)
    client = _client_from_args(args)
    close_channel(client, request, block=args.block)


def cmd_describe_graph(args: argparse.Namespace) -> None:
    client = _client_from_args(args)
    payload = client.describe_graph()
    if not args.render:
        print(json.dumps(payload, indent=4))
        return

    render_config = load_render_config(
        overrides={
            "output_path": args.output,
            "layout_command": args.layout_cmd,
            "viewer_command": args.viewer,
        }
    )
    graph = ChannelGraph.from_rpc(payload)
    description = build_graph_description(graph)
    render_graph(
        description,
        output_path=render_config.output_path,
        layout_command=render_config.layout_command,
        viewer_command=None if args.no_view else render_config.viewer_command,
    )


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    if args.config:
        set_default_config_path(args.config)
    try:
        if args.command == "openchannel":
            cmd_open_channel(args)
        elif args.command == "closechannel":
            cmd_close_channel(args)
        elif args.command == "describegraph":
            cmd_describe_graph(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        CodecError,
        ConfigurationError,
        RPCError,
        RPCTransportError,
        NormalizationError,
        RenderError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
