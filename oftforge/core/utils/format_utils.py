def _tail(address: str, n: int = 6) -> str:
    """Return the last n characters of an address (for concise logs)."""
    addr = address or ""
    return addr[-n:] if len(addr) >= n else addr


def _truncate(text: str, limit: int = 400) -> str:
    """Shorten captured command output or response bodies for logs."""
    value = (text or "").strip()
    if len(value) <= limit:
        return value
    return value[:limit] + f"… (+{len(value) - limit} chars)"

