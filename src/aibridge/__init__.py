"""Client side of the file-based AI bridge protocol."""

from .core.errors import BridgeError, ErrorCode
from .core.lifecycle import AssistantSession, LifecycleState, PendingResult
from .core.models import AIRequest, InvocationContext, RequestKind
from .services.settings import Settings, SettingsManager, SettingsStore

__version__ = "0.1.0"

__all__ = [
    "AIRequest",
    "AssistantSession",
    "BridgeError",
    "ErrorCode",
    "InvocationContext",
    "LifecycleState",
    "PendingResult",
    "RequestKind",
    "Settings",
    "SettingsManager",
    "SettingsStore",
    "__version__",
]
