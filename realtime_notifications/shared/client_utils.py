from datetime import datetime, timezone
from urllib.parse import urlsplit, urlunsplit

def make_client_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every session calls this once in __init__ and hands the same dict to the
    manager and the router, so UI layers can read one place.
    Keys: frames_received, frames_dropped, notifications, reconnects_scheduled,
          probes_sent, probe_timeouts, last_rtt_ms, last_frame_at, created_at.
    """
    return {
        "frames_received": 0,
        "frames_dropped": 0,
        "notifications": 0,
        "reconnects_scheduled": 0,
        "probes_sent": 0,
        "probe_timeouts": 0,
        "last_rtt_ms": None,
        "last_frame_at": None,
        "created_at": datetime.now(timezone.utc).isoformat()
    }

def build_ws_url(server_base_url: str, path: str = "/ws") -> str:
    """
    Derive the channel endpoint from the page/server base URL.
    The scheme follows the base: https -> wss, anything else -> ws.
    """
    parts = urlsplit(server_base_url)
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    return urlunsplit((scheme, parts.netloc, "/" + path.lstrip("/"), "", ""))

def build_http_url(server_base_url: str, path: str) -> str:
    return f"{server_base_url.rstrip('/')}/{path.lstrip('/')}"
