from __future__ import annotations


def build_ws_url(api_url: str | None, ws_url: str | None = None, path: str = "/ws") -> str:
    """Derive the push endpoint from an explicit WS base or the REST base.

    ``http://`` becomes ``ws://`` and ``https://`` becomes ``wss://``.
    Returns an empty string when neither base is known.
    """
    base = (ws_url or api_url or "").rstrip("/")
    if not base:
        return ""
    suffix = path if path.startswith("/") else f"/{path}"
    if base.startswith("ws"):
        return f"{base}{suffix}"
    return f"{base.replace('http', 'ws', 1)}{suffix}"
