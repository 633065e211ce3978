"""REST client for an lnd node.

lnd exposes its gRPC surface through a REST gateway. Unary calls return a
single JSON document; server-streaming calls return newline-delimited JSON
frames of the form ``{"result": {...}}`` or ``{"error": {...}}``. This module
only moves those documents across the wire; interpreting them is left to the
lifecycle and graph modules.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, Optional

import requests
from requests import RequestException, Response

from .config import ConfigurationError, LNDConfig, load_lnd_config

logger = logging.getLogger(__name__)

UNARY_TIMEOUT = 30


class RPCError(RuntimeError):
    """Raised when the node answers with an error document or stream frame."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message

    @classmethod
    def from_payload(cls, error: Any) -> "RPCError":
        if not isinstance(error, dict):
            return cls(-1, str(error))
        # Older gateways report grpc_code, newer ones a google.rpc.Status.
        code = error.get("code", error.get("grpc_code", -1))
        message = error.get("message") or error.get("error") or "unknown"
        try:
            code = int(code)
        except (TypeError, ValueError):
            code = -1
        return cls(code, str(message))


class RPCTransportError(RuntimeError):
    """Raised when the endpoint is unreachable, the stream breaks or data is malformed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LNDRestClient:
    """Thin client for lnd's REST gateway.

    Each helper maps onto one RPC. Unary helpers return the parsed JSON reply;
    streaming helpers return a generator of ``result`` payloads which closes the
    underlying HTTP response when the generator is closed.
    """

    def __init__(self, config: LNDConfig) -> None:
        self.config = config
        self._session = requests.Session()
        self._session.headers["content-type"] = "application/json"
        macaroon = config.macaroon_hex()
        if macaroon:
            self._session.headers["Grpc-Metadata-macaroon"] = macaroon
        if config.use_https and config.tls_cert_path is not None:
            self._session.verify = str(config.tls_cert_path)

    @classmethod
    def from_env(cls) -> "LNDRestClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_lnd_config())

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    def _send(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        stream: bool = False,
    ) -> Response:
        logger.debug("RPC %s %s body=%s params=%s", method, path, body, params)
        timeout: Any = (self.config.connect_timeout, None) if stream else UNARY_TIMEOUT
        try:
            response = self._session.request(
                method,
                self._url(path),
                data=json.dumps(body) if body is not None else None,
                params=params,
                stream=stream,
                timeout=timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self.config.base_url} failed. Ensure lnd is running with its "
                "REST listener enabled and that --rpcserver, --tlscertpath and --macaroonpath are correct."
            ) from exc
        self._raise_for_status(response)
        return response

    def _raise_for_status(self, response: Response) -> None:
        if response.ok:
            return
        try:
            err_body = response.json()
        except ValueError:
            err_body = response.text
        finally:
            response.close()

        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        logger.debug("RPC error body: %s", err_body)
        if isinstance(err_body, dict):
            nested = err_body.get("error")
            payload = nested if isinstance(nested, dict) else err_body
            if payload.get("message"):
                raise RPCError.from_payload(payload)
        if response.status_code in {401, 403}:
            raise RPCTransportError(
                f"Access denied ({response.status_code}). Check that the macaroon matches this node.",
                status_code=response.status_code,
            )
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}",
            status_code=response.status_code,
        )

    def call(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform a unary request and return the decoded JSON reply."""

        response = self._send(method, path, body=body, params=params)
        try:
            return response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc

    def stream(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Yield each ``result`` frame of a server-streaming call.

        The request is sent on the first ``next()``. There is no read timeout;
        the generator blocks until the next frame or the end of the stream.
        """

        response = self._send(method, path, body=body, params=params, stream=True)
        with response:
            try:
                for line in response.iter_lines():
                    if not line:
                        continue
                    try:
                        frame = json.loads(line)
                    except ValueError as exc:
                        raise RPCTransportError(f"Malformed stream frame: {line[:120]!r}") from exc
                    if not isinstance(frame, dict):
                        raise RPCTransportError(f"Unexpected stream frame: {frame!r}")
                    if frame.get("error"):
                        raise RPCError.from_payload(frame["error"])
                    logger.debug("RPC stream frame %s", frame)
                    yield frame.get("result", frame)
            except RequestException as exc:
                logger.error(
                    "RPC stream broken: %s",
                    exc,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                raise RPCTransportError("RPC stream was interrupted before it completed") from exc

    # Lightning RPCs -------------------------------------------------------

    def open_channel(self, request: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        return self.stream("POST", "/v1/channels/stream", body=request)

    def close_channel(
        self, funding_txid: str, output_index: int, *, force: bool = False
    ) -> Iterator[Dict[str, Any]]:
        params = {"force": "true"} if force else None
        return self.stream(
            "DELETE", f"/v1/channels/{funding_txid}/{output_index}", params=params
        )

    def describe_graph(self) -> Dict[str, Any]:
        return self.call("GET", "/v1/graph")


__all__ = [
    "ConfigurationError",
    "LNDRestClient",
    "RPCError",
    "RPCTransportError",
]
