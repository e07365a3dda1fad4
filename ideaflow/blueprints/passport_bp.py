"""
Passport Blueprint — students, participation and tiers.

Endpoints (all under /api/v1):
    GET    /tiers                                  tier table
    POST   /students                               enroll { full_name, email, university, program }
    GET    /students                               list (?university=&tier=)
    GET    /students/<pn>                          one student
    PUT    /students/<pn>                          edit profile fields
    DELETE /students/<pn>                          delete (cascades participations)
    PUT    /students/<pn>/tier                     { "tier": "Mentor" } manual override
    GET    /students/<pn>/progress                 progress toward the next tier
    GET    /students/<pn>/events                   participations joined with events
    POST   /students/<pn>/events                   { event_id, participation_type?, notes? }
    DELETE /students/<pn>/events/<event_id>        remove a participation
    GET    /events                                 published events (?university=)
"""

import logging

from flask import Blueprint, jsonify, request

from ideaflow.blueprints import (
    current_actor,
    json_body,
    paginate_items,
    register_error_handlers,
    services,
)
from ideaflow.core.exceptions import ValidationError
from ideaflow.passport.tiers import TIER_DEFINITIONS

logger = logging.getLogger(__name__)

passport_bp = Blueprint("passport", __name__, url_prefix="/api/v1")
register_error_handlers(passport_bp)


# ═════════════════════════════════════════════════════════════════════════════
# TIERS
# ═════════════════════════════════════════════════════════════════════════════


@passport_bp.route("/tiers", methods=["GET"])
def list_tiers():
    return jsonify([
        {
            "tier": d.tier.value,
            "min_events": d.min_events,
            "max_events": d.max_events,
            "color": d.color,
        }
        for d in TIER_DEFINITIONS.values()
    ])


# ═════════════════════════════════════════════════════════════════════════════
# STUDENTS
# ═════════════════════════════════════════════════════════════════════════════


@passport_bp.route("/students", methods=["POST"])
def enroll_student():
    data = json_body()
    student = services()["passport"].enroll_student(
        full_name=data.get("full_name"),
        email=data.get("email"),
        university=data.get("university"),
        program=data.get("program"),
        approved_by=current_actor("Passport Unit"),
    )
    return jsonify(student.to_dict()), 201


@passport_bp.route("/students", methods=["GET"])
def list_students():
    students = services()["passport"].list_students(
        university=(request.args.get("university") or "").strip() or None,
        tier=request.args.get("tier") or None,
    )
    page, total = paginate_items(students)
    return jsonify({"items": [s.to_dict() for s in page], "total": total})


@passport_bp.route("/students/<passport_number>", methods=["GET"])
def get_student(passport_number):
    return jsonify(services()["passport"].get_student(passport_number).to_dict())


@passport_bp.route("/students/<passport_number>", methods=["PUT"])
def update_student(passport_number):
    student = services()["passport"].update_student(passport_number, json_body())
    return jsonify(student.to_dict())


@passport_bp.route("/students/<passport_number>", methods=["DELETE"])
def delete_student(passport_number):
    removed = services()["passport"].delete_student(passport_number)
    return jsonify({"deleted": passport_number, "participations_removed": removed})


@passport_bp.route("/students/<passport_number>/tier", methods=["PUT"])
def override_tier(passport_number):
    data = json_body()
    if not data.get("tier"):
        raise ValidationError("tier is required", details={"tier": "required"})
    student = services()["passport"].override_tier(passport_number, data["tier"])
    return jsonify(student.to_dict())


@passport_bp.route("/students/<passport_number>/progress", methods=["GET"])
def student_progress(passport_number):
    progress = services()["passport"].student_progress(passport_number)
    return jsonify({
        "passport_number": passport_number,
        "progress": progress.to_dict() if progress else None,
    })


# ═════════════════════════════════════════════════════════════════════════════
# PARTICIPATION
# ═════════════════════════════════════════════════════════════════════════════


@passport_bp.route("/students/<passport_number>/events", methods=["GET"])
def student_events(passport_number):
    return jsonify(services()["passport"].student_events(passport_number))


@passport_bp.route("/students/<passport_number>/events", methods=["POST"])
def add_participation(passport_number):
    data = json_body()
    if not data.get("event_id"):
        raise ValidationError("event_id is required", details={"event_id": "required"})
    participation = services()["passport"].add_participation(
        passport_number,
        data["event_id"],
        participation_type=data.get("participation_type") or "Attended",
        notes=data.get("notes") or "",
    )
    return jsonify(participation.to_dict()), 201


@passport_bp.route("/students/<passport_number>/events/<event_id>", methods=["DELETE"])
def remove_participation(passport_number, event_id):
    student = services()["passport"].remove_participation(passport_number, event_id)
    return jsonify(student.to_dict())


# ═════════════════════════════════════════════════════════════════════════════
# EVENTS
# ═════════════════════════════════════════════════════════════════════════════


@passport_bp.route("/events", methods=["GET"])
def list_events():
    university = (request.args.get("university") or "").strip() or None
    events = services()["events"].list_events(university)
    page, total = paginate_items(events)
    return jsonify({"items": [e.to_dict() for e in page], "total": total})
