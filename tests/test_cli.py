import base64
import json
from types import SimpleNamespace

import pytest

from lnctl import cli
from lnctl import config as config_module

TXID = bytes(range(32))
NODE_KEY = "02" + "ab" * 32


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode()


class StubLightning:
    def __init__(self) -> None:
        self.open_requests = []

    def open_channel(self, request):
        self.open_requests.append(request)
        yield {"chan_pending": {"txid": _b64(TXID)}}
        yield {"chan_open": {"channel_point": {"funding_txid_bytes": _b64(TXID), "output_index": 1}}}

    def describe_graph(self):
        return {
            "nodes": [{"pub_key": NODE_KEY}, {"pub_key": "03" + "cd" * 32}],
            "edges": [
                {"channel_id": "1234567890", "node1_pub": NODE_KEY, "node2_pub": "03" + "cd" * 32, "capacity": "500000"}
            ],
        }


@pytest.fixture
def stub_client(monkeypatch: pytest.MonkeyPatch) -> StubLightning:
    client = StubLightning()
    monkeypatch.setattr(cli, "_client_from_args", lambda _args: client)
    return client


def test_openchannel_prints_pending_line_without_block(stub_client, capsys) -> None:
    cli.main(["openchannel", "--node_key", NODE_KEY, "--local_amt", "200000"])

    lines = capsys.readouterr().out.strip().splitlines()
    assert [json.loads(line) for line in lines] == [{"funding_txid": TXID[::-1].hex()}]
    assert stub_client.open_requests[0]["local_funding_amount"] == "200000"


def test_openchannel_block_waits_for_channel_point(stub_client, capsys) -> None:
    cli.main(["openchannel", "--node_key", NODE_KEY, "--local_amt", "200000", "--block"])

    lines = capsys.readouterr().out.strip().splitlines()
    assert json.loads(lines[-1]) == {"channel_point": f"{TXID[::-1].hex()}:1"}


def test_invalid_node_key_fails_before_any_rpc(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    def _no_network(_args):
        raise AssertionError("client must not be created")

    monkeypatch.setattr(cli, "_client_from_args", _no_network)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["openchannel", "--node_key", NODE_KEY[:-2], "--local_amt", "1000"])

    assert excinfo.value.code == 1
    assert "node_key must be 33 bytes" in capsys.readouterr().err


def test_peer_id_and_node_key_are_exclusive(stub_client, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["openchannel", "--peer_id", "4", "--node_key", NODE_KEY, "--local_amt", "1000"])
    assert excinfo.value.code == 1
    assert "only one can be specified" in capsys.readouterr().err
    assert stub_client.open_requests == []


def test_closechannel_rejects_short_txid(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setattr(cli, "_client_from_args", lambda _args: SimpleNamespace())
    with pytest.raises(SystemExit):
        cli.main(["closechannel", "--funding_txid", "abcd", "--output_index", "0"])
    assert "txid must be 32 bytes" in capsys.readouterr().err


def test_describegraph_render_uses_pipeline(stub_client, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    calls = []

    def fake_render(description, **kwargs):
        calls.append((description.source, kwargs))
        return kwargs["output_path"]

    monkeypatch.setattr(cli, "render_graph", fake_render)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr(config_module, "_CONFIG_PATH_OVERRIDE", None)
    output = tmp_path / "channels.svg"

    cli.main(["describegraph", "--render", "--output", str(output), "--no-view"])

    source, kwargs = calls[0]
    assert '"02abababab" -- "03cdcdcdcd"' in source
    assert kwargs["output_path"] == output
    assert kwargs["layout_command"] == "dot"
    assert kwargs["viewer_command"] is None


def test_describegraph_without_render_prints_json(stub_client, capsys) -> None:
    cli.main(["describegraph"])
    payload = json.loads(capsys.readouterr().out)
    assert len(payload["nodes"]) == 2


def test_describegraph_malformed_reply_exits_with_error(
    stub_client, monkeypatch: pytest.MonkeyPatch, tmp_path, capsys
) -> None:
    monkeypatch.setattr(
        stub_client,
        "describe_graph",
        lambda: {"nodes": [], "edges": [{"channel_id": "1", "node1_pub": NODE_KEY, "node2_pub": NODE_KEY, "capacity": "lots"}]},
    )
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr(config_module, "_CONFIG_PATH_OVERRIDE", None)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["describegraph", "--render", "--output", str(tmp_path / "g.svg"), "--no-view"])

    assert excinfo.value.code == 1
    assert "malformed describegraph reply" in capsys.readouterr().err


def test_describegraph_non_executable_layout_command_exits_with_error(
    stub_client, monkeypatch: pytest.MonkeyPatch, tmp_path, capsys
) -> None:
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr(config_module, "_CONFIG_PATH_OVERRIDE", None)
    layout = tmp_path / "dot"
    layout.write_text("not a program\n")
    layout.chmod(0o644)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(
            ["describegraph", "--render", "--output", str(tmp_path / "g.svg"), "--layout-cmd", str(layout), "--no-view"]
        )

    assert excinfo.value.code == 1
    assert "exit 126" in capsys.readouterr().err
