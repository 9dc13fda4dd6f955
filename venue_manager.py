"""Venue state coordination: seat pool, reservations, waitlists and history."""

from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple, Union
import logging
import threading

from models import (
    AlreadyReserved,
    Canceled,
    Client,
    NotFound,
    NothingToUndo,
    Reserved,
    Seat,
    Section,
    SectionFull,
    TOTAL_SEATS,
    Waitlisted,
    CancelOutcome,
    ReserveOutcome,
)

logger = logging.getLogger(__name__)

# Returned by a reserve() chooser to join the waitlist of the section that was full
WAITLIST = 'waitlist'

Chooser = Callable[[SectionFull], Union[str, Section, None]]


@dataclass
class _Action:
    """Undo record for one mutating operation."""
    kind: str  # reserve | waitlist | cancel
    client: Client
    section: Section
    seat: Optional[Seat] = None
    promoted: Optional[Client] = None
    skipped: List[Client] = field(default_factory=list)


class VenueManager:
    """Thread-safe owner of all seat state for a single venue."""

    def __init__(self):
        self._lock = threading.RLock()
        self._available: Set[Seat] = set()
        self._reservations: Dict[Client, Seat] = {}
        self._waitlists: Dict[Section, Deque[Client]] = {section: deque() for section in Section}
        self._history: List[str] = []
        self._undo_stack: List[_Action] = []

        self._initialize_seats()

    def _initialize_seats(self):
        for section in Section:
            for number in range(1, section.capacity + 1):
                self._available.add(Seat(section, section.row, number))
        logger.debug(f"Initialized venue with {len(self._available)} seats")

    @contextmanager
    def transaction(self):
        """Run a block as one critical section, logging anything that escapes it."""
        with self._lock:
            try:
                yield
            except Exception as e:
                logger.error(f"Venue operation error: {e}")
                raise

    # Reservations

    def reserve(self, client: Client, section_input, choose: Optional[Chooser] = None) -> ReserveOutcome:
        """Reserve a seat for the client in the named section.

        When the section is full and ``choose`` is given, it is called with the
        SectionFull outcome and may return another section to try, WAITLIST to
        queue for the full section, or None to stop. Retries are bounded by the
        number of sections; once exhausted the last SectionFull is returned.
        """
        section = Section.parse(section_input)

        outcome: ReserveOutcome = self._attempt_reserve(client, section)
        for _ in range(len(Section)):
            if not isinstance(outcome, SectionFull) or choose is None:
                return outcome

            decision = choose(outcome)
            if decision is None:
                return outcome
            if decision == WAITLIST:
                return self.join_waitlist(client, outcome.section)

            outcome = self._attempt_reserve(client, Section.parse(decision))

        return outcome

    def _attempt_reserve(self, client: Client, section: Section) -> ReserveOutcome:
        with self.transaction():
            held = self._reservations.get(client)
            if held is not None:
                return AlreadyReserved(client, held)

            seat = self._free_seat(section)
            if seat is None:
                logger.info(f"Section full: {section} requested by {client}")
                return SectionFull(client, section, self._sections_with_free_seats())

            return self._assign(client, seat)

    def _assign(self, client: Client, seat: Seat) -> Reserved:
        self._available.remove(seat)
        self._reservations[client] = seat
        self._history.append(f"{client} reserved {seat}")
        self._undo_stack.append(_Action('reserve', client, seat.section, seat=seat))

        logger.info(f"Reservation confirmed: {client} -> {seat}")
        return Reserved(client, seat, seat.section.price)

    def join_waitlist(self, client: Client, section_input) -> ReserveOutcome:
        """Queue the client for the section, or seat them now if a seat has come free."""
        section = Section.parse(section_input)

        with self.transaction():
            held = self._reservations.get(client)
            if held is not None:
                return AlreadyReserved(client, held)

            queue = self._waitlists[section]
            if client in queue:
                return Waitlisted(client, section, queue.index(client) + 1, added=False)

            seat = self._free_seat(section)
            if seat is not None:
                return self._assign(client, seat)

            queue.append(client)
            self._undo_stack.append(_Action('waitlist', client, section))

            logger.info(f"Waitlisted {client} for {section} at position {len(queue)}")
            return Waitlisted(client, section, len(queue))

    def cancel(self, client: Client) -> CancelOutcome:
        """Cancel the client's reservation and hand the seat to the section's waitlist head."""
        with self.transaction():
            holder = next((c for c in self._reservations if c == client), None)
            if holder is None:
                logger.info(f"No reservation to cancel for {client}")
                return NotFound(client)

            seat = self._reservations.pop(holder)
            self._available.add(seat)
            self._history.append(f"{holder} canceled reservation for {seat}")
            logger.info(f"Reservation canceled: {holder} released {seat}")

            promotion, skipped = self._promote_from_waitlist(seat)
            self._undo_stack.append(_Action(
                'cancel',
                holder,
                seat.section,
                seat=seat,
                promoted=promotion.client if promotion else None,
                skipped=skipped,
            ))

            return Canceled(holder, seat, promotion)

    def _promote_from_waitlist(self, seat: Seat) -> Tuple[Optional[Reserved], List[Client]]:
        queue = self._waitlists[seat.section]
        skipped: List[Client] = []

        while queue:
            candidate = queue.popleft()
            if candidate in self._reservations:
                # Seated elsewhere since joining; drop the stale entry
                logger.info(f"Skipping waitlisted {candidate}: already holds {self._reservations[candidate]}")
                skipped.append(candidate)
                continue

            self._available.remove(seat)
            self._reservations[candidate] = seat
            self._history.append(f"{candidate} reserved from waitlist for {seat}")

            logger.info(f"Waitlist promotion: {candidate} -> {seat}")
            return Reserved(candidate, seat, seat.section.price, from_waitlist=True), skipped

        return None, skipped

    # Undo

    def undo(self) -> str:
        """Reverse the most recent action and return a description of what was undone."""
        with self.transaction():
            action = self._undo_stack.pop() if self._undo_stack else None
            if action is not None:
                description = self._reverse(action)
                self._history.append(f"undo: {description}")

        if action is None:
            raise NothingToUndo("no action to undo")

        logger.info(f"Undo: {description}")
        return description

    def _reverse(self, action: _Action) -> str:
        if action.kind == 'reserve':
            del self._reservations[action.client]
            self._available.add(action.seat)
            return f"{action.client} released {action.seat}"

        if action.kind == 'waitlist':
            self._waitlists[action.section].remove(action.client)
            return f"{action.client} left the {action.section} waitlist"

        # cancel: take the seat back from the promoted client, then requeue
        queue = self._waitlists[action.section]
        if action.promoted is not None:
            del self._reservations[action.promoted]
            queue.appendleft(action.promoted)
        else:
            self._available.remove(action.seat)
        queue.extendleft(reversed(action.skipped))
        self._reservations[action.client] = action.seat
        return f"{action.client} restored to {action.seat}"

    # Inspection

    def section_summary(self) -> Dict[Section, int]:
        """Count free seats per section."""
        with self.transaction():
            counts = {section: 0 for section in Section}
            for seat in self._available:
                counts[seat.section] += 1
            return counts

    def waitlist_snapshot(self, section_input) -> List[Client]:
        section = Section.parse(section_input)
        with self.transaction():
            return list(self._waitlists[section])

    def history(self) -> List[str]:
        with self.transaction():
            return list(self._history)

    def seat_for(self, client: Client) -> Optional[Seat]:
        with self.transaction():
            return self._reservations.get(client)

    def reservation_count(self) -> int:
        with self.transaction():
            return len(self._reservations)

    def check_invariants(self) -> bool:
        """Verify every seat is either free or held exactly once."""
        with self.transaction():
            held = list(self._reservations.values())
            return (
                len(held) == len(set(held))
                and self._available.isdisjoint(held)
                and len(self._available) + len(held) == TOTAL_SEATS
            )

    def _free_seat(self, section: Section) -> Optional[Seat]:
        return min(
            (seat for seat in self._available if seat.section is section),
            key=lambda seat: seat.number,
            default=None,
        )

    def _sections_with_free_seats(self) -> Tuple[Section, ...]:
        free = {seat.section for seat in self._available}
        return tuple(section for section in Section if section in free)
