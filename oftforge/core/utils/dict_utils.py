from typing import Mapping, Optional, Sequence, Union


def _read_path(node: object, path: Sequence[Union[str, int]]) -> Optional[object]:
    """
    Traverse a nested structure of dicts/lists using a path of keys/indices.

    This confines all low-level dict/list access to a single helper, keeping the
    rest of the codebase typed and attribute-oriented (no widespread .get()).
    """
    current: object = node
    for part in path:
        if isinstance(part, int):
            if isinstance(current, list) and 0 <= part < len(current):
                current = current[part]
            else:
                return None
        else:
            if isinstance(current, Mapping) and part in current:
                current = current[part]  # confined indexing
            else:
                return None
    return current


def _read_str_path(node: object, path: Sequence[Union[str, int]]) -> Optional[str]:
    """Return a string found at `path` if present and non-empty."""
    value = _read_path(node, path)
    if isinstance(value, str) and len(value) > 0:
        return value
    return None


def _read_int_like(raw: object) -> Optional[int]:
    """
    Parse an integer-like value. Accepts:
    - int directly
    - decimal numeric string
    - hex string with '0x' prefix
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return int(raw)
    if isinstance(raw, str) and raw.strip():
        text = raw.strip()
        try:
            return int(text, 16) if text.startswith("0x") else int(text)
        except ValueError:
            return None
    return None
