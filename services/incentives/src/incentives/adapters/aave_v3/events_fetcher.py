"""Event fetcher for Aave V3 Pool logs via eth_getLogs."""

import logging
from typing import Any

from services.incentives.src.incentives.adapters.aave_v3.config import (
    BORROW_TOPIC,
    REPAY_TOPIC,
    SUPPLY_TOPIC,
    WITHDRAW_TOPIC,
)
from services.incentives.src.incentives.adapters.aave_v3.rpc import RpcClient, RpcError
from services.incentives.src.incentives.domain.models import (
    BORROW,
    REPAY,
    SUPPLY,
    WITHDRAW,
    EventBatches,
    RawEvent,
)

logger = logging.getLogger(__name__)

EVENT_TOPICS = {
    SUPPLY: SUPPLY_TOPIC,
    WITHDRAW: WITHDRAW_TOPIC,
    BORROW: BORROW_TOPIC,
    REPAY: REPAY_TOPIC,
}

# Node error fragments meaning "narrow the block range and retry"
RANGE_TOO_WIDE_MESSAGES = (
    "more than",
    "too many results",
    "response size exceeded",
    "query returned more than",
    "block range",
)


def address_to_topic(address: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


def topic_to_address(topic: str) -> str:
    if not topic.startswith("0x") or len(topic) != 66:
        raise ValueError(f"Unexpected topic format: {topic}")
    return "0x" + topic[-40:].lower()


def decode_words(data_hex: str, n: int) -> list[int]:
    """Decode the first n 32-byte static words of a log's data field."""
    if not data_hex.startswith("0x"):
        raise ValueError("Log data must be 0x-prefixed")
    hex_str = data_hex[2:]
    need = 64 * n
    if len(hex_str) < need:
        raise ValueError(f"Log data too short: need {need} hex chars, got {len(hex_str)}")
    return [int(hex_str[i : i + 64], 16) for i in range(0, need, 64)]


def word_to_address(word: int) -> str:
    return "0x" + format(word, "064x")[-40:]


def decode_log(event_type: str, log: dict[str, Any]) -> RawEvent:
    """
    Decode one Pool log.

    Supply/Borrow index (reserve, onBehalfOf, referralCode) and carry
    (user, amount, ...) in data. Withdraw/Repay index (reserve, user, to|repayer)
    and carry amount first in data.
    """
    topics = log["topics"]
    block_number = int(log["blockNumber"], 16)
    log_index = int(log["logIndex"], 16)
    tx_hash = log.get("transactionHash")

    if event_type in (SUPPLY, BORROW):
        user_word, amount = decode_words(log["data"], 2)
        return RawEvent(
            user=word_to_address(user_word),
            on_behalf_of=topic_to_address(topics[2]),
            amount=amount,
            block_number=block_number,
            log_index=log_index,
            tx_hash=tx_hash,
        )
    if event_type in (WITHDRAW, REPAY):
        (amount,) = decode_words(log["data"], 1)
        return RawEvent(
            user=topic_to_address(topics[2]),
            amount=amount,
            block_number=block_number,
            log_index=log_index,
            tx_hash=tx_hash,
        )
    raise ValueError(f"Unknown event type: {event_type}")


class PoolEventsFetcher:
    """Fetches Supply/Withdraw/Borrow/Repay logs for one reserve from the Pool."""

    def __init__(self, client: RpcClient, pool_address: str, max_splits: int = 16):
        self.client = client
        self.pool_address = pool_address.lower()
        self.max_splits = max_splits

    def fetch_events(self, asset_address: str, from_block: int, to_block: int) -> EventBatches:
        """
        Fetch every event type for a reserve in [from_block, to_block].

        Args:
            asset_address: Reserve (underlying token) address
            from_block: First block, inclusive
            to_block: Last block, inclusive

        Returns:
            EventBatches with decoded raw events per type
        """
        batches = EventBatches()
        by_type = batches.by_type()
        for event_type, topic in EVENT_TOPICS.items():
            logs = self._get_logs_range(
                [topic, address_to_topic(asset_address)],
                from_block,
                to_block,
                self.max_splits,
            )
            by_type[event_type].extend(
                decode_log(event_type, log) for log in logs if not log.get("removed")
            )
            logger.info(
                f"Found {len(by_type[event_type])} {event_type} events "
                f"in blocks {from_block}-{to_block}"
            )
        return batches

    def _get_logs_range(
        self, topics: list[str], from_block: int, to_block: int, max_splits: int
    ) -> list[dict[str, Any]]:
        params = {
            "address": self.pool_address,
            "topics": topics,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
        }
        try:
            return self.client.get_logs(params)
        except RpcError as e:
            msg = str(e).lower()
            too_wide = any(s in msg for s in RANGE_TOO_WIDE_MESSAGES)
            if not too_wide or max_splits <= 0 or from_block >= to_block:
                raise

        mid = (from_block + to_block) // 2
        logger.info(f"Splitting log range {from_block}-{to_block} at {mid}")
        left = self._get_logs_range(topics, from_block, mid, max_splits - 1)
        right = self._get_logs_range(topics, mid + 1, to_block, max_splits - 1)
        return left + right


class MockPoolEventsFetcher(PoolEventsFetcher):
    """Mock fetcher for testing without network calls."""

    def __init__(self) -> None:
        self._mock_batches: dict[tuple[int, int], EventBatches] = {}
        self._default = EventBatches()
        self.call_history: list[tuple[str, int, int]] = []

    def set_mock_batches(
        self, batches: EventBatches, block_range: tuple[int, int] | None = None
    ) -> None:
        """Set batches to return, for one block range or for any range."""
        if block_range is None:
            self._default = batches
        else:
            self._mock_batches[block_range] = batches

    def fetch_events(self, asset_address: str, from_block: int, to_block: int) -> EventBatches:
        self.call_history.append((asset_address, from_block, to_block))
        return self._mock_batches.get((from_block, to_block), self._default)
