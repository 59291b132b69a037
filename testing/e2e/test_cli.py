"""E2E tests for the seqhttp command-line entry point."""
import threading

import httpx
import pytest

from scripted_server import free_port, wait_for_port
from seqhttp import cli


def run_main_in_thread(argv):
    result = {}

    def target():
        result["code"] = cli.main(argv)

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread, result


def test_cli_serves_script_and_exits(capsys):
    port = free_port()
    thread, result = run_main_in_thread([
        "-b", "127.0.0.1",
        "-p", str(port),
        "-H", "X-Global: g",
        "200", "OK",
        "404", "Not Found", "-H", "X-Global: override",
    ])

    assert wait_for_port(port), "CLI server did not start listening"

    with httpx.Client(base_url=f"http://127.0.0.1:{port}", timeout=5.0) as client:
        first = client.get("/first")
        second = client.post("/second", content=b"request body")

    assert (first.status_code, first.content) == (200, b"OK")
    assert first.headers["x-global"] == "g"
    assert (second.status_code, second.content) == (404, b"Not Found")
    assert second.headers["x-global"] == "override"

    thread.join(5)
    assert not thread.is_alive(), "CLI did not exit after the last response"
    assert result["code"] == 0

    out = capsys.readouterr().out
    assert "GET /first HTTP/1.1" in out
    assert "POST /second HTTP/1.1" in out
    assert "request body" in out


def test_cli_quiet_does_not_dump_requests(capsys):
    port = free_port()
    thread, result = run_main_in_thread(["-q", "-b", "127.0.0.1", "-p", str(port), "200", "OK"])

    assert wait_for_port(port)
    assert httpx.get(f"http://127.0.0.1:{port}/", timeout=5.0).status_code == 200

    thread.join(5)
    assert result["code"] == 0
    assert "GET / HTTP/1.1" not in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["-h"], ["--help"], ["200", "OK", "--help"]])
def test_cli_help(argv, capsys):
    assert cli.main(argv) == 0

    out = capsys.readouterr().out
    assert "Usage:" in out
    assert "RESPONSE OPTIONS:" in out


@pytest.mark.parametrize(
    "argv,message",
    [
        ([], "status code and body are required"),
        (["200"], "status code and body are required"),
        (["-p", "port", "200", "OK"], "invalid int value"),
        (["200", "OK", "-r", "0"], "repeat must be positive"),
        (["-c", "cert.pem", "200", "OK"], "key option is not set"),
    ],
)
def test_cli_invalid_arguments(argv, message, capsys):
    assert cli.main(argv) == 1

    err = capsys.readouterr().err
    assert message in err
    assert "Usage:" in err


def test_cli_unreadable_certificate(tmp_path):
    port = free_port()
    argv = [
        "-p", str(port),
        "-c", str(tmp_path / "missing-cert.pem"),
        "-k", str(tmp_path / "missing-key.pem"),
        "200", "OK",
    ]

    assert cli.main(argv) == 1


def test_cli_port_in_use():
    port = free_port()
    thread, result = run_main_in_thread(["-b", "127.0.0.1", "-p", str(port), "200", "OK"])
    assert wait_for_port(port)

    try:
        assert cli.main(["-b", "127.0.0.1", "-p", str(port), "200", "OK"]) == 1
    finally:
        httpx.get(f"http://127.0.0.1:{port}/", timeout=5.0)
        thread.join(5)

    assert result["code"] == 0
