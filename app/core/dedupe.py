"""
Click deduplicator — unique visitors by IP address.

The IP string is the key as stored: no normalization, so an IPv4-mapped IPv6
address (::ffff:1.2.3.4) and its IPv4 form (1.2.3.4) count as two visitors.
Clicks without an IP share a single bucket.
"""

import datetime
from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from app.core.entities import Click


@dataclass(frozen=True)
class ClickScope:
    """Link set + inclusive time range. None on any field means unbounded."""
    link_ids: frozenset[UUID] | None = None
    start: datetime.datetime | None = None
    end: datetime.datetime | None = None

    def contains(self, click: Click) -> bool:
        if self.link_ids is not None and click.link_id not in self.link_ids:
            return False
        if self.start is not None and click.clicked_at < self.start:
            return False
        if self.end is not None and click.clicked_at > self.end:
            return False
        return True


def unique_count(clicks: Iterable[Click], scope: ClickScope | None = None) -> int:
    scope = scope or ClickScope()
    return len({click.ip_address for click in clicks if scope.contains(click)})
