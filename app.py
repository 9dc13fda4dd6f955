"""HTTP entrypoint for the venue reservation service."""

from flask import Blueprint, Flask, current_app, request, jsonify
from flask_cors import CORS
import logging
import os
from dotenv import load_dotenv
from typing import Any, Dict, List, Optional, Tuple

load_dotenv()
from models import (
    AlreadyReserved,
    Canceled,
    Client,
    InvalidSection,
    NothingToUndo,
    Reserved,
    Section,
    SectionFull,
    TOTAL_SEATS,
    Waitlisted,
)
from venue_manager import VenueManager, WAITLIST

logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO').upper())
logger = logging.getLogger(__name__)

api = Blueprint('venue', __name__)

# Reserve/join outcomes -> HTTP status
OUTCOME_STATUS = {
    Reserved: 201,
    Waitlisted: 202,
    SectionFull: 409,
    AlreadyReserved: 409,
}


def get_venue() -> VenueManager:
    return current_app.extensions['venue']


def bad_request(message: str, *, details: Optional[Dict[str, Any]] = None):
    """Return a uniform 400 payload, optionally including field-level details."""
    payload: Dict[str, Any] = {"error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), 400


def require_json_object() -> Tuple[Optional[Dict[str, Any]], Optional[Tuple[str, int]]]:
    """Ensure the request body is a JSON object before proceeding."""
    if not request.is_json:
        return None, bad_request("request body must be a JSON object")

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, bad_request("request body must be a JSON object")

    return data, None


def validate_client(data: Dict[str, Any]) -> Tuple[Optional[Client], Optional[Tuple[str, int]]]:
    """Build a Client from name/email/phone fields, rejecting blanks and non-strings."""
    fields: Dict[str, str] = {}
    for key in ("name", "email"):
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            return None, bad_request(f"{key} must be a non-empty string", details={"field": key})
        fields[key] = value.strip()

    phone = data.get("phone", "")
    if not isinstance(phone, str):
        return None, bad_request("phone must be a string", details={"field": "phone"})

    return Client(fields["name"], fields["email"], phone.strip()), None


def validate_alternates(raw: Any) -> Tuple[Optional[List[Section]], Optional[Tuple[str, int]]]:
    """Validate the optional list of fallback sections tried when the first choice is full."""
    if raw is None:
        return [], None
    if not isinstance(raw, list):
        return None, bad_request("alternates must be a JSON array of section names")

    sections: List[Section] = []
    for index, name in enumerate(raw):
        if not isinstance(name, str):
            return None, bad_request("each alternate must be a string", details={"index": index})
        try:
            sections.append(Section.parse(name))
        except InvalidSection:
            return None, bad_request("invalid alternate section", details={"index": index, "section": name})
    return sections, None


def section_chooser(alternates: List[Section], join_waitlist: bool):
    """Turn the request's fallback preferences into a reserve() chooser."""
    pending = list(alternates)

    def choose(full: SectionFull):
        # Only sections that still have a free seat are worth a retry
        while pending:
            candidate = pending.pop(0)
            if candidate in full.alternatives:
                return candidate
        return WAITLIST if join_waitlist else None

    return choose


def render_outcome(outcome):
    return jsonify(outcome.to_dict()), OUTCOME_STATUS[type(outcome)]


@api.errorhandler(InvalidSection)
def handle_invalid_section(error: InvalidSection):
    return bad_request("invalid section", details={"section": error.raw, "valid": [s.value for s in Section]})


# API Endpoints

@api.route('/sections', methods=['GET'])
def list_sections():
    """Return price, capacity, free seats and waitlist length for every section."""
    venue = get_venue()
    summary = venue.section_summary()
    return jsonify([
        {
            "section": section.value,
            "price": section.price,
            "capacity": section.capacity,
            "available_seats": summary[section],
            "waitlist_length": len(venue.waitlist_snapshot(section)),
        }
        for section in Section
    ])


@api.route('/sections/<section_name>/waitlist', methods=['GET'])
def get_waitlist(section_name):
    """Show the clients queued for a section, head first."""
    section = Section.parse(section_name)
    waitlist = get_venue().waitlist_snapshot(section)
    return jsonify({"section": section.value, "waitlist": [c.to_dict() for c in waitlist]})


@api.route('/sections/<section_name>/waitlist', methods=['POST'])
def join_waitlist(section_name):
    """Queue a client for a full section."""
    data, error_response = require_json_object()
    if error_response:
        return error_response

    client, client_error = validate_client(data)
    if client_error:
        return client_error

    outcome = get_venue().join_waitlist(client, section_name)
    return render_outcome(outcome)


@api.route('/reservations', methods=['POST'])
def reserve_seat():
    """Reserve a seat, optionally falling back to other sections or the waitlist."""
    data, error_response = require_json_object()
    if error_response:
        return error_response

    client, client_error = validate_client(data)
    if client_error:
        return client_error

    section = data.get('section')
    if not isinstance(section, str) or not section.strip():
        return bad_request("section must be a non-empty string")

    alternates, alternates_error = validate_alternates(data.get('alternates'))
    if alternates_error:
        return alternates_error

    join_waitlist_flag = data.get('join_waitlist', False)
    if not isinstance(join_waitlist_flag, bool):
        return bad_request("join_waitlist must be a boolean")

    outcome = get_venue().reserve(client, section, choose=section_chooser(alternates, join_waitlist_flag))

    if isinstance(outcome, Reserved):
        logger.info(f"Reservation created: {outcome.client} -> {outcome.seat} (${outcome.price})")
    return render_outcome(outcome)


@api.route('/reservations/cancel', methods=['POST'])
def cancel_reservation():
    """Cancel a client's reservation; the freed seat may go straight to the waitlist."""
    data, error_response = require_json_object()
    if error_response:
        return error_response

    client, client_error = validate_client(data)
    if client_error:
        return client_error

    outcome = get_venue().cancel(client)
    if isinstance(outcome, Canceled):
        return jsonify(outcome.to_dict()), 200
    return jsonify(outcome.to_dict()), 404


@api.route('/history', methods=['GET'])
def get_history():
    return jsonify({"history": get_venue().history()})


@api.route('/undo', methods=['POST'])
def undo_last_action():
    """Reverse the most recent reservation, waitlist join or cancellation."""
    try:
        description = get_venue().undo()
    except NothingToUndo:
        return jsonify({"error": "nothing to undo"}), 409
    return jsonify({"undone": description}), 200


@api.route('/reset', methods=['POST'])
def reset_venue():
    """Administrative endpoint: replace the venue with a freshly seeded one."""
    if request.data:
        data, error_response = require_json_object()
        if error_response:
            return error_response
        if data:
            return bad_request("reset payload must be empty")

    current_app.extensions['venue'] = VenueManager()
    logger.info("Venue reset: all %s seats available", TOTAL_SEATS)
    return jsonify({"message": "venue reset", "seats_reset": TOTAL_SEATS}), 200


@api.route('/health', methods=['GET'])
def health_check():
    """Report seat totals and whether the pool/reservation invariant holds."""
    venue = get_venue()
    available = sum(venue.section_summary().values())
    invariants_valid = venue.check_invariants()
    if not invariants_valid:
        logger.error("Seat invariant violated")
    return jsonify({
        "status": "healthy" if invariants_valid else "unhealthy",
        "total_seats": TOTAL_SEATS,
        "available_seats": available,
        "reserved_seats": venue.reservation_count(),
        "invariants_valid": invariants_valid,
    })


def create_app(venue: Optional[VenueManager] = None) -> Flask:
    """Build the Flask app around its own VenueManager."""
    flask_app = Flask(__name__)
    CORS(flask_app)
    flask_app.extensions['venue'] = venue if venue is not None else VenueManager()
    flask_app.register_blueprint(api)
    return flask_app


app = create_app()


if __name__ == '__main__':
    logger.info("""
    ================================
    VENUE RESERVATION SYSTEM
    ================================
    Sections: Field Level ($300), Main Level ($120), Grandstand Level ($45)
    Seats: %s
    ================================
    """, TOTAL_SEATS)

    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=False, threaded=True)
