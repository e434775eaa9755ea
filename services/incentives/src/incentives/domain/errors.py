"""Error taxonomy for indexing and allocation cycles."""


class IncentivesError(Exception):
    """Base class for incentive engine errors."""


class OrderingViolationError(IncentivesError):
    """An event is older than the watermark of the position it touches. Fatal."""

    def __init__(self, address: str, event_timestamp: int, watermark_timestamp: int):
        self.address = address
        self.event_timestamp = event_timestamp
        self.watermark_timestamp = watermark_timestamp
        super().__init__(
            f"Event at timestamp {event_timestamp} precedes watermark "
            f"{watermark_timestamp} for position {address}"
        )


class UnknownEventTypeError(IncentivesError):
    """An event carries a type tag the accumulator cannot apply. Fatal."""

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Unknown event type: {event_type}")


class PositionAheadOfChainError(IncentivesError):
    """A position watermark is ahead of the block used for allocation. Fatal."""

    def __init__(self, address: str, position_block: int, current_block: int):
        self.address = address
        self.position_block = position_block
        self.current_block = current_block
        super().__init__(
            f"Position data ahead of allocation block: {address} at block "
            f"{position_block}, allocating at block {current_block}"
        )


class BlockNotFoundError(IncentivesError):
    """A block timestamp could not be resolved. Recoverable."""

    def __init__(self, block_number: int):
        self.block_number = block_number
        super().__init__(f"Block not found: {block_number}")
