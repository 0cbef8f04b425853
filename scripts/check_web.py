"""Launch the API in a subprocess and check it end to end.

Usage:
    python scripts/check_web.py
"""

from __future__ import annotations

import contextlib
import os
import socket
import subprocess
import sys
import time

import httpx


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _check(base: str) -> bool:
    with httpx.Client(base_url=base, timeout=2.0) as client:
        if client.get("/healthz").json().get("status") != "ok":
            return False
        state = client.post("/api/v1/auth/sign-in", json={"uid": "smoke-check"}).json()
        if not state.get("authenticated"):
            return False
        stats = client.get("/api/v1/history/stats").json()
        return stats.get("total_sessions") == 0


def main() -> int:
    port = int(os.environ.get("PORT", str(free_port())))
    proc = subprocess.Popen(
        [sys.executable, "-m", "mindsight", "serve", "--port", str(port), "--log-level", "warning"],
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )

    base = f"http://127.0.0.1:{port}"
    ok = False
    try:
        for _ in range(100):
            if proc.poll() is not None:
                break
            time.sleep(0.1)
            try:
                ok = _check(base)
            except httpx.HTTPError:
                continue
            break
        if ok:
            return 0
        output = proc.stdout.read() if proc.stdout and proc.poll() is not None else ""
        if output:
            sys.stderr.write(output[-2000:])
        return 2
    finally:
        proc.terminate()
        with contextlib.suppress(subprocess.TimeoutExpired):
            proc.wait(timeout=2)
        if proc.poll() is None:
            proc.kill()
            with contextlib.suppress(subprocess.TimeoutExpired):
                proc.wait(timeout=2)


if __name__ == "__main__":
    raise SystemExit(main())
