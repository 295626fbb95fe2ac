"""Activity records — the append-only audit trail of engine decisions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ActivityKind(str, Enum):
    TRADE_SIGNAL = "trade_signal"
    ANALYSIS = "analysis"
    RISK_REJECTED = "risk_rejected"
    ORDER_PLACED = "order_placed"
    ORDER_FILLED = "order_filled"
    ORDER_FAILED = "order_failed"
    END_OF_DAY = "end_of_day"
    STATUS_CHANGE = "status_change"
    ERROR = "error"
    SYSTEM = "system"


class ActivityStatus(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# Bot id used for owner-level entries (cycle start, data refresh).
SYSTEM_BOT_ID = "system"


@dataclass(frozen=True)
class ActivityRecord:
    """One audit entry.  Write-once; kind and status are validated here."""

    bot_id: str
    kind: ActivityKind
    title: str
    description: str
    status: ActivityStatus = ActivityStatus.INFO
    data: dict = field(default_factory=dict)
    owner_id: Optional[str] = None
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ActivityKind(self.kind))
        object.__setattr__(self, "status", ActivityStatus(self.status))
