"""JSON-RPC transport and block-time resolution."""

import logging
import time
from typing import Any

import httpx

from services.incentives.src.incentives.domain.errors import BlockNotFoundError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 502, 503, 504)


class RpcError(Exception):
    """Raised when the node rejects a request or the transport fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS_CODES


class RpcClient:
    """Minimal Ethereum JSON-RPC client."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        max_tries: int = 5,
        backoff_seconds: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.rpc_url = rpc_url
        self.max_tries = max_tries
        self.backoff_seconds = backoff_seconds
        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._request_id = 0

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def call(self, method: str, params: list[Any]) -> Any:
        """Call a JSON-RPC method, retrying transient failures with backoff."""
        for attempt in range(1, self.max_tries + 1):
            try:
                return self._call_once(method, params)
            except RpcError as e:
                if not e.retryable or attempt == self.max_tries:
                    raise
                sleep_s = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    f"RPC {method} failed ({e}), retry {attempt}/{self.max_tries - 1} in {sleep_s:.1f}s"
                )
                time.sleep(sleep_s)

    def _call_once(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            response = self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RpcError(
                f"HTTP {e.response.status_code} from RPC", status_code=e.response.status_code
            ) from e
        except httpx.TimeoutException as e:
            raise RpcError(f"RPC timeout: {e}", status_code=504) from e
        except httpx.HTTPError as e:
            raise RpcError(f"RPC transport error: {e}") from e

        data = response.json()
        if data.get("error"):
            raise RpcError(f"JSON-RPC error: {data['error']}")
        return data.get("result")

    def get_block_number(self) -> int:
        return int(self.call("eth_blockNumber", []), 16)

    def get_block(self, block_number: int) -> dict[str, Any] | None:
        return self.call("eth_getBlockByNumber", [hex(block_number), False])

    def get_logs(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return self.call("eth_getLogs", [params]) or []


class BlockTimeResolver:
    """Resolves block numbers to unix timestamps, caching results."""

    def __init__(self, client: RpcClient):
        self.client = client
        self._cache: dict[int, int] = {}

    def timestamp_of(self, block_number: int) -> int:
        """
        Timestamp of a block in seconds.

        Raises:
            BlockNotFoundError: If the node has no such block
        """
        if block_number in self._cache:
            return self._cache[block_number]
        block = self.client.get_block(block_number)
        if not block:
            raise BlockNotFoundError(block_number)
        ts = int(block["timestamp"], 16)
        self._cache[block_number] = ts
        return ts

    __call__ = timestamp_of
