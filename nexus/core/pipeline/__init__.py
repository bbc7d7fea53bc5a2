"""Event-emitting bridge and swap workflows."""

from .events import EventCallback, EventStream
from .models import (
    BRIDGE_STEPS,
    SWAP_STEPS,
    TRANSFER_STEPS,
    EventName,
    NexusEvent,
    OperationResult,
    SwapMode,
    SwapQuote,
)
from .pipeline import OperationPipeline

__all__ = [
    "OperationPipeline",
    "EventCallback",
    "EventStream",
    "EventName",
    "NexusEvent",
    "OperationResult",
    "SwapMode",
    "SwapQuote",
    "BRIDGE_STEPS",
    "TRANSFER_STEPS",
    "SWAP_STEPS",
]
