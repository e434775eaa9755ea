"""Merge per-type Pool event batches into one ordered, tagged sequence."""

from typing import Mapping, Sequence

from services.incentives.src.incentives.domain.errors import UnknownEventTypeError
from services.incentives.src.incentives.domain.models import (
    EVENT_TYPES,
    EventBatches,
    RawEvent,
    TaggedEvent,
    normalize_address,
)


def resolve_entity(raw: RawEvent) -> str:
    """The position an event affects: onBehalfOf when present, else user."""
    if raw.on_behalf_of:
        return normalize_address(raw.on_behalf_of)
    return normalize_address(raw.user)


def tag_event(event_type: str, raw: RawEvent) -> TaggedEvent:
    if event_type not in EVENT_TYPES:
        raise UnknownEventTypeError(event_type)
    return TaggedEvent(
        event_type=event_type,
        address=resolve_entity(raw),
        amount=raw.amount,
        block_number=raw.block_number,
        log_index=raw.log_index,
        user=normalize_address(raw.user),
        on_behalf_of=normalize_address(raw.on_behalf_of) if raw.on_behalf_of else None,
        tx_hash=raw.tx_hash,
    )


def normalize_events(
    batches: EventBatches | Mapping[str, Sequence[RawEvent]],
) -> list[TaggedEvent]:
    """
    Tag and merge event batches, ordered by (block_number, log_index).

    Log index rather than transaction index breaks ties because several
    Pool events can be emitted by one transaction. The sort is stable and
    the batches are visited in a fixed type order, so the same input always
    yields the same sequence.

    Args:
        batches: EventBatches, or a mapping of event type to raw events

    Returns:
        Tagged events in chain emission order

    Raises:
        UnknownEventTypeError: If a mapping key is not a known event type
    """
    by_type = batches.by_type() if isinstance(batches, EventBatches) else batches

    tagged: list[TaggedEvent] = []
    for event_type in sorted(by_type, key=_type_rank):
        for raw in by_type[event_type]:
            tagged.append(tag_event(event_type, raw))

    return sorted(tagged, key=lambda e: e.sort_key)


def _type_rank(event_type: str) -> tuple[int, str]:
    # Unknown keys sort last and fail in tag_event
    if event_type in EVENT_TYPES:
        return (EVENT_TYPES.index(event_type), event_type)
    return (len(EVENT_TYPES), event_type)
