"""
drumline.protocol
~~~~~~~~~~~~~~~~~
Message contract between the authority, the control panel and page agents.

Envelope on the wire::

    {"destination": "pageAgent", "category": "blockCurrentDomain", "id": "9f1c..."}
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .errors import ProtocolError


class Destination(str, Enum):
    AUTHORITY = "authority"
    PANEL = "panel"
    PAGE_AGENT = "pageAgent"


class Category(str, Enum):
    # panel -> authority
    IS_HOSTNAME_BLOCKED = "isHostnameBlocked"
    BLOCK_INDEFINITELY = "blockCurrentHostnameIndefinitely"
    BLOCK_AT_DAILY_TIMES = "blockCurrentHostnameAtDailyTimes"
    UNBLOCK = "unblockCurrentHostname"
    DELETE_DAILY_BLOCK_RULE = "deleteCurrentHostnameDailyBlockRule"
    # authority -> panel
    HOSTNAME_IS_BLOCKED = "hostnameIsBlocked"
    HOSTNAME_IS_NOT_BLOCKED = "hostnameIsNotBlocked"
    # -> page agent
    BLOCK_CURRENT_DOMAIN = "blockCurrentDomain"


def new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Envelope:
    destination: Destination
    category: str
    payload: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "destination": self.destination.value,
            "category": self.category,
            **self.payload,
        }
        if self.id is not None:
            d["id"] = self.id
        return d

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Envelope":
        if not isinstance(raw, Mapping):
            raise ProtocolError("Message must be an object")
        try:
            destination = Destination(raw.get("destination"))
        except ValueError:
            raise ProtocolError(f"Unknown destination: {raw.get('destination')}") from None
        category = raw.get("category")
        if not isinstance(category, str) or not category:
            raise ProtocolError("Message has no category")
        payload = {k: v for k, v in raw.items() if k not in ("destination", "category", "id")}
        msg_id = raw.get("id")
        return cls(destination, category, payload, None if msg_id is None else str(msg_id))


def directive(category: Category, **payload: Any) -> Envelope:
    """A page-agent message stamped with a fresh identifier."""
    return Envelope(Destination.PAGE_AGENT, category.value, payload, new_message_id())


class DuplicateFilter:
    """
    Remembers only the last identifier processed.  Catches an immediate
    redelivery of the same message; reordered or delayed duplicates pass.
    """

    def __init__(self) -> None:
        self.last_id: Optional[str] = None

    def is_duplicate(self, message_id: Optional[str]) -> bool:
        if message_id is not None and message_id == self.last_id:
            return True
        self.last_id = message_id
        return False
