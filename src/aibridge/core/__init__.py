"""Wire codec, transport and request lifecycle."""

from .codec import Codec, FixedSchemaCodec
from .envelope import BridgeOutcome, decode_envelope
from .history import HistoryLog
from .scheduler import AsyncioScheduler, ManualScheduler, QtScheduler, Scheduler
from .transport import BridgeTransport

__all__ = [
    "BridgeOutcome",
    "BridgeTransport",
    "AsyncioScheduler",
    "Codec",
    "FixedSchemaCodec",
    "HistoryLog",
    "ManualScheduler",
    "QtScheduler",
    "Scheduler",
    "decode_envelope",
]
