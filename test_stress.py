"""Concurrent reserve/cancel traffic against one venue; the seat invariant must survive it."""

import random
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from models import Client, Reserved, Section, SectionFull, TOTAL_SEATS, Waitlisted
from venue_manager import VenueManager, WAITLIST

TOTAL_USERS = 200        # concurrent users
CANCEL_PROBABILITY = 0.4  # share of seated users who give their seat back

lock = threading.Lock()


def user_flow(venue, user_id, results):
    """
    Simulates a single user:
    1. Picks a random section
    2. Tries to reserve, queueing for the waitlist if it is full
    3. Randomly cancels
    """
    rng = random.Random(user_id)
    client = Client(f"user{user_id}", f"user{user_id}@example.com")

    outcome = venue.reserve(client, rng.choice(list(Section)), choose=lambda full: WAITLIST)

    with lock:
        results[type(outcome).__name__] += 1

    if isinstance(outcome, Reserved) and rng.random() < CANCEL_PROBABILITY:
        venue.cancel(client)
        with lock:
            results["cancelled"] += 1


def run_load(venue):
    results = {"Reserved": 0, "Waitlisted": 0, "SectionFull": 0, "AlreadyReserved": 0, "cancelled": 0}
    with ThreadPoolExecutor(max_workers=50) as executor:
        futures = [executor.submit(user_flow, venue, i, results) for i in range(TOTAL_USERS)]
        for future in as_completed(futures):
            future.result()
    return results


def test_invariant_under_concurrent_load():
    venue = VenueManager()

    results = run_load(venue)

    assert results["Reserved"] + results["Waitlisted"] == TOTAL_USERS
    assert venue.check_invariants()
    assert sum(venue.section_summary().values()) + venue.reservation_count() == TOTAL_SEATS


def test_single_field_seat_goes_to_exactly_one_user():
    venue = VenueManager()
    outcomes = []

    def grab(user_id):
        client = Client(f"fan{user_id}", f"fan{user_id}@example.com")
        outcome = venue.reserve(client, "Field Level")
        with lock:
            outcomes.append(outcome)

    with ThreadPoolExecutor(max_workers=20) as executor:
        list(executor.map(grab, range(40)))

    winners = [o for o in outcomes if isinstance(o, Reserved)]
    assert len(winners) == 1
    assert sum(isinstance(o, SectionFull) for o in outcomes) == 39
    assert venue.section_summary()[Section.FIELD_LEVEL] == 0


def test_successive_cancellations_drain_waitlist_in_order():
    venue = VenueManager()
    holder = Client("holder", "holder@example.com")
    venue.reserve(holder, "Field Level")

    queued = [Client(f"wait{i}", f"wait{i}@example.com") for i in range(10)]
    for client in queued:
        assert isinstance(venue.join_waitlist(client, "Field Level"), Waitlisted)

    # Each cancel hands the single seat to the next queued client
    current = holder
    for expected in queued:
        outcome = venue.cancel(current)
        assert outcome.promotion.client == expected
        current = expected

    assert venue.waitlist_snapshot("Field Level") == []
    assert venue.check_invariants()
