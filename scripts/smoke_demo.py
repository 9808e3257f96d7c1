from __future__ import annotations

import argparse
import json
import time
import urllib.error
import urllib.request
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_STORYLINE = REPO_ROOT / "examples" / "storylines" / "dinner_party.json"


def fetch(url: str, body: bytes | None = None) -> tuple[int, bytes]:
    headers = {"Content-Type": "application/json"} if body is not None else {}
    req = urllib.request.Request(url, data=body, headers=headers)
    with urllib.request.urlopen(req, timeout=30) as resp:
        return resp.status, resp.read()


def wait_for(url: str, timeout: int) -> bytes:
    deadline = time.time() + timeout
    last_error: Exception | None = None
    while time.time() < deadline:
        try:
            status, body = fetch(url)
            if status == 200:
                return body
        except (urllib.error.URLError, ConnectionError) as exc:
            last_error = exc
        time.sleep(1)
    raise RuntimeError(f"Timed out waiting for {url}: {last_error}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Smoke test for a running layout server.")
    parser.add_argument("--server", default="http://localhost:8000")
    parser.add_argument("--storyline", type=Path, default=DEFAULT_STORYLINE)
    parser.add_argument("--criterion", default="sum-of-heights")
    parser.add_argument("--timeout", type=int, default=60)
    args = parser.parse_args()

    base = args.server.rstrip("/")
    wait_for(f"{base}/health", args.timeout)

    status, body = fetch(
        f"{base}/api/layout?criterion={args.criterion}", args.storyline.read_bytes()
    )
    if status != 200:
        raise RuntimeError(f"Layout request failed with status {status}")
    payload = json.loads(body.decode("utf-8"))
    fragments = payload.get("fragments") or []
    if not fragments:
        raise RuntimeError("Layout response has no fragments")
    if not any(frag.get("kind") == "meeting" for frag in fragments):
        raise RuntimeError("Layout response has no meeting fragments")

    metrics = payload.get("metrics", {})
    print(
        f"Smoke test passed: {len(fragments)} fragments, "
        f"{metrics.get('wiggle_count')} wiggles, total height {metrics.get('total_height')}."
    )


if __name__ == "__main__":
    main()
