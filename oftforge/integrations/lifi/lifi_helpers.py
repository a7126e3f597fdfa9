from typing import Dict, Mapping, Optional, cast

import httpx

from oftforge.configuration.config import settings
from oftforge.core.errors import BridgeApiError
from oftforge.core.utils.dict_utils import _read_str_path
from oftforge.core.utils.format_utils import _truncate
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

EVM_NATIVE_TOKEN_ADDRESSES = frozenset({
    "0x0000000000000000000000000000000000000000",
    "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee",
})

# LI.FI placeholder for native SOL
SOLANA_NATIVE_TOKEN_ADDRESS = "11111111111111111111111111111111"


def is_native_token(token_address: Optional[str]) -> bool:
    """Return True for the placeholder addresses LI.FI uses for native assets."""
    if not token_address:
        return True
    return token_address.lower() in EVM_NATIVE_TOKEN_ADDRESSES or token_address == SOLANA_NATIVE_TOKEN_ADDRESS


def _build_lifi_headers(api_key: Optional[str] = None) -> Dict[str, str]:
    """
    Construct LI.FI HTTP headers, optionally including an API key if configured.
    """
    headers: Dict[str, str] = {"accept": "application/json"}
    key = api_key if api_key is not None else settings.LIFI_API_KEY
    if isinstance(key, str) and key.strip():
        headers["x-lifi-api-key"] = key.strip()
    return headers


def _error_message(response: httpx.Response) -> str:
    """Extract LI.FI's `message` field from an error body, falling back to the raw text."""
    try:
        payload = response.json()
    except ValueError:
        return _truncate(response.text, 200)
    return _read_str_path(payload, ("message",)) or _truncate(response.text, 200)


async def _http_get_json(
        client: httpx.AsyncClient,
        url: str,
        params: Optional[Mapping[str, object]] = None,
) -> Dict[str, object]:
    """
    Perform a GET request and return parsed JSON.

    Raises:
        BridgeApiError on non-2xx responses (with status code and body) and on transport errors.
    """
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
        return cast(Dict[str, object], response.json())
    except httpx.HTTPStatusError as exc:
        log.warning(
            "[LI.FI][HTTP] GET fails: url=%s status=%s body=%s",
            url,
            exc.response.status_code,
            _truncate(exc.response.text),
        )
        raise BridgeApiError(
            f"LI.FI request failed ({exc.response.status_code}): {_error_message(exc.response)}",
            status_code=exc.response.status_code,
            body=exc.response.text,
        ) from exc
    except httpx.RequestError as exc:
        log.warning("[LI.FI][HTTP] GET request error: url=%s error=%s", url, str(exc))
        raise BridgeApiError(f"LI.FI request error: {exc}") from exc
    except ValueError as exc:
        raise BridgeApiError(f"LI.FI returned a non-JSON payload for {url}") from exc


def _normalize_identifier(raw: Optional[str]) -> str:
    """Lowercase/strip a chain or token identifier for cache lookups."""
    return (raw or "").strip().lower()
