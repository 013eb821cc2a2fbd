from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, NamedTuple


class VisitStats(NamedTuple):
    total: int
    unique: int


@dataclass
class User:
    id: str
    email: str
    password_hash: str

    def __post_init__(self):
        if not self.id:
            raise ValueError("User.id must not be empty")
        if not self.email:
            raise ValueError("User.email must not be empty")
        if not self.password_hash:
            raise ValueError("User.password_hash must not be empty")


@dataclass
class Link:
    id: str
    long_url: str
    owner_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    visits: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("Link.id must not be empty")
        if not self.long_url:
            raise ValueError("Link.long_url must not be empty")
        if not self.owner_id:
            raise ValueError("Link.owner_id must not be empty")
        for visitor, count in self.visits.items():
            if count < 0:
                raise ValueError(f"Negative visit count for {visitor}")


@dataclass
class LinkView:
    """Ссылка вместе с посчитанной статистикой переходов."""

    link: Link
    total: int
    unique: int

    @property
    def id(self) -> str:
        return self.link.id

    @property
    def long_url(self) -> str:
        return self.link.long_url

    @property
    def created_at(self) -> datetime:
        return self.link.created_at
