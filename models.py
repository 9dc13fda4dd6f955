"""Value types describing the venue layout, its clients and reservation outcomes."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union
import enum


class InvalidSection(ValueError):
    """Raised when a section name matches none of the venue sections."""

    def __init__(self, raw: Any):
        self.raw = raw
        super().__init__(f"invalid section: {raw!r}")


class NothingToUndo(LookupError):
    """Raised when undo is requested but no action has been recorded."""


class Section(str, enum.Enum):
    """Fixed venue zones; the value is the display name clients type."""
    FIELD_LEVEL = 'Field Level'
    MAIN_LEVEL = 'Main Level'
    GRANDSTAND_LEVEL = 'Grandstand Level'

    @classmethod
    def parse(cls, raw: Union[str, 'Section']) -> 'Section':
        """Match a section name case-insensitively, raising InvalidSection on a miss."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            wanted = raw.strip().casefold()
            for section in cls:
                if section.value.casefold() == wanted:
                    return section
        raise InvalidSection(raw)

    @property
    def capacity(self) -> int:
        return SECTION_CAPACITY[self]

    @property
    def row(self) -> int:
        return SECTION_ROW[self]

    @property
    def price(self) -> int:
        return SECTION_PRICE[self]

    def __str__(self) -> str:
        return self.value


SECTION_CAPACITY = {
    Section.FIELD_LEVEL: 1,
    Section.MAIN_LEVEL: 1000,
    Section.GRANDSTAND_LEVEL: 2000,
}

SECTION_ROW = {
    Section.FIELD_LEVEL: 1,
    Section.MAIN_LEVEL: 2,
    Section.GRANDSTAND_LEVEL: 3,
}

# Dollars per seat
SECTION_PRICE = {
    Section.FIELD_LEVEL: 300,
    Section.MAIN_LEVEL: 120,
    Section.GRANDSTAND_LEVEL: 45,
}

TOTAL_SEATS = sum(SECTION_CAPACITY.values())


@dataclass(frozen=True)
class Seat:
    section: Section
    row: int
    number: int

    def __str__(self) -> str:
        return f"{self.section} - Row {self.row} Seat {self.number}"

    def to_dict(self) -> Dict[str, Any]:
        return {"section": self.section.value, "row": self.row, "number": self.number}


@dataclass(frozen=True)
class Client:
    """Reservation holder; identity is the (name, email) pair, phone is informational."""
    name: str
    email: str
    phone: str = field(default='', compare=False)

    def __str__(self) -> str:
        return f"{self.name} ({self.email})"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email, "phone": self.phone}


# Outcomes returned by VenueManager. Each carries a status tag for the shell.

@dataclass(frozen=True)
class Reserved:
    status = 'reserved'

    client: Client
    seat: Seat
    price: int
    from_waitlist: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "client": self.client.to_dict(),
            "seat": self.seat.to_dict(),
            "price": self.price,
            "from_waitlist": self.from_waitlist,
        }


@dataclass(frozen=True)
class SectionFull:
    """No free seat in the requested section; nothing was changed."""
    status = 'section_full'

    client: Client
    section: Section
    alternatives: Tuple[Section, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "client": self.client.to_dict(),
            "section": self.section.value,
            "alternatives": [s.value for s in self.alternatives],
        }


@dataclass(frozen=True)
class Waitlisted:
    status = 'waitlisted'

    client: Client
    section: Section
    position: int
    added: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "client": self.client.to_dict(),
            "section": self.section.value,
            "position": self.position,
            "added": self.added,
        }


@dataclass(frozen=True)
class AlreadyReserved:
    status = 'already_reserved'

    client: Client
    seat: Seat

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "client": self.client.to_dict(), "seat": self.seat.to_dict()}


@dataclass(frozen=True)
class Canceled:
    status = 'canceled'

    client: Client
    seat: Seat
    promotion: Optional[Reserved] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "client": self.client.to_dict(),
            "seat": self.seat.to_dict(),
            "promotion": self.promotion.to_dict() if self.promotion else None,
        }


@dataclass(frozen=True)
class NotFound:
    status = 'not_found'

    client: Client

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "client": self.client.to_dict()}


ReserveOutcome = Union[Reserved, SectionFull, Waitlisted, AlreadyReserved]
CancelOutcome = Union[Canceled, NotFound]
