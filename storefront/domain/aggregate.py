"""
Base class for aggregate roots.

An aggregate root carries the optimistic-concurrency ``version`` compared at
the storage boundary, the audit fields, and a private buffer of domain events
raised while the aggregate is mutated in a unit of work.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from storefront.domain.events import DomainEvent


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AggregateRoot(BaseModel):
    version: int = Field(
        default=0,
        description="Stored version this instance was loaded at. 0 for "
        "aggregates that have never been saved.",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None
    modified_by: Optional[str] = None

    _domain_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    @field_validator("version")
    @classmethod
    def version_must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Version must be non-negative")
        return v

    @property
    def domain_events(self) -> Tuple[DomainEvent, ...]:
        return tuple(self._domain_events)

    def add_domain_event(self, event: DomainEvent) -> None:
        self._domain_events.append(event)

    def pull_domain_events(self) -> List[DomainEvent]:
        """Return the buffered events in the order they occurred and clear
        the buffer."""
        events = list(self._domain_events)
        self._domain_events.clear()
        return events

    def _touch(self, acting_user_id: Optional[str] = None) -> None:
        self.updated_at = utc_now()
        if acting_user_id:
            self.modified_by = acting_user_id
