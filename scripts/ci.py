#!/usr/bin/env python
import argparse
import os
import socket
import subprocess
import sys
import time
from urllib.request import urlopen
from urllib.error import URLError, HTTPError

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PYTHON = sys.executable or "python"

# (status, body) pairs replayed by the smoke test
SMOKE_SCRIPT = [(200, "OK"), (400, "Bad Request"), (500, "Internal Server Error")]


def run_cmd(cmd, env=None):
    print(f"> {' '.join(cmd)}")
    result = subprocess.run(cmd, env=env)
    if result.returncode != 0:
        sys.exit(result.returncode)
    return result


def run_cmd_allow_fail(cmd, env=None):
    print(f"> {' '.join(cmd)}")
    return subprocess.run(cmd, env=env)


def step(msg):
    print(f"\n== {msg}")


def check_pytest():
    step("Checking pytest")
    result = run_cmd_allow_fail([PYTHON, "-m", "pytest", "--version"])
    if result.returncode == 0:
        return
    print("ERROR: pytest is not installed. Install with: pip install -e '.[test]'")
    sys.exit(1)


def cmd_test(args):
    check_pytest()
    step("Running pytest")
    pytest_cmd = [PYTHON, "-m", "pytest", "testing", "-vv"]
    if args.pytest_args:
        pytest_cmd.extend(args.pytest_args)
    result = run_cmd_allow_fail(pytest_cmd)
    print("")
    print("Tests passed" if result.returncode == 0 else "Tests failed")
    sys.exit(result.returncode)


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def wait_for_port(port, timeout_secs=10):
    step(f"Waiting for seqhttp to listen on port {port}")
    start = time.time()
    while True:
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=1):
                print("Server is listening")
                return
        except OSError:
            pass

        if time.time() - start > timeout_secs:
            print("ERROR: server did not start listening in time")
            sys.exit(1)
        time.sleep(0.2)


def fetch(url):
    try:
        with urlopen(url, timeout=5) as resp:
            return resp.status, resp.read().decode()
    except HTTPError as e:
        return e.code, e.read().decode()


def cmd_smoke(args):
    port = args.port or free_port()
    cmd = [PYTHON, "-m", "seqhttp", "-q", "-b", "127.0.0.1", "-p", str(port)]
    for status, body in SMOKE_SCRIPT:
        cmd += [str(status), body]

    step("Starting seqhttp")
    print(f"> {' '.join(cmd)}")
    proc = subprocess.Popen(cmd)
    try:
        wait_for_port(port)

        step("Replaying script")
        failed = False
        for expected_status, expected_body in SMOKE_SCRIPT:
            status, body = fetch(f"http://127.0.0.1:{port}/")
            ok = (status, body) == (expected_status, expected_body)
            failed = failed or not ok
            print(f"  {'OK  ' if ok else 'FAIL'} {status} {body!r} (expected {expected_status} {expected_body!r})")

        step("Waiting for seqhttp to exit")
        try:
            code = proc.wait(timeout=10)
        except subprocess.TimeoutExpired:
            print("ERROR: server did not exit after the last response")
            sys.exit(1)

        step("Checking that the server is gone")
        try:
            fetch(f"http://127.0.0.1:{port}/")
            print("ERROR: server still answers after the script was served")
            failed = True
        except (URLError, ConnectionError):
            print("Connection refused as expected")
    finally:
        if proc.poll() is None:
            proc.kill()

    print("")
    if failed or code != 0:
        print(f"Smoke test failed (exit code {code})")
        sys.exit(1)
    print("Smoke test passed")


def build_parser():
    parser = argparse.ArgumentParser(
        description="seqhttp CI utility (Python, cross-platform)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # test
    p_test = subparsers.add_parser("test", help="Run the pytest suite")
    p_test.add_argument(
        "pytest_args",
        nargs=argparse.REMAINDER,
        help="Extra arguments passed to pytest (use -- to separate)",
    )
    p_test.set_defaults(func=cmd_test)

    # smoke
    p_smoke = subparsers.add_parser("smoke", help="Run the CLI against a short script and check it exits")
    p_smoke.add_argument("--port", type=int, default=0, help="Port to use (default: pick a free one)")
    p_smoke.set_defaults(func=cmd_smoke)

    return parser


def main():
    os.chdir(PROJECT_ROOT)
    parser = build_parser()
    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
