"""
Ideas Blueprint — the pipeline API consumed by the unit dashboards.

Endpoints (all under /api/v1):
    GET    /units                              unit registry with permissions
    GET    /stages                             ordered stages + status display config
    POST   /ideas                              submit an idea
    GET    /ideas                              list (?university=&status=&unit=)
    GET    /ideas/<id>                         one idea (+ time in status)
    POST   /ideas/<id>/approve                 { "notes": "..." }
    POST   /ideas/<id>/return                  { "reason": "..." }
    POST   /ideas/<id>/reject                  { "reason": "..." }
    POST   /ideas/<id>/publish                 { "date": "...", "name": "...", ... }
    POST   /ideas/<id>/verification            published → passport verification
    PUT    /ideas/<id>/ancillary-link          { "link": "https://..." }
    GET    /units/<unit_id>/ideas              ideas held by a unit (?university=)
    GET    /units/<unit_id>/pending-count      pending count (?university=)
    GET    /lobby/<university>                 lobby view (?filter=all|pending|completed|rejected)

Layer contract:
    - Blueprint: parse input, read identity headers, call PipelineService,
      serialise. Every business rule lives in the service.
    - Reads come from the live IdeaFeed snapshot.
"""

import logging

from flask import Blueprint, jsonify, request

from ideaflow.blueprints import (
    current_actor,
    current_membership,
    json_body,
    paginate_items,
    register_error_handlers,
    services,
)
from ideaflow.core.exceptions import ValidationError
from ideaflow.pipeline.registry import ORDERED_STAGES, STATUS_CONFIG, UNITS, Stage, get_unit
from ideaflow.services import idea_queries

logger = logging.getLogger(__name__)

ideas_bp = Blueprint("ideas", __name__, url_prefix="/api/v1")
register_error_handlers(ideas_bp)


def _serialize(idea):
    data = idea.to_dict()
    data["time_in_status"] = idea_queries.time_in_status(idea.status_history)
    return data


def _university_arg():
    return (request.args.get("university") or "").strip() or None


# ═════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═════════════════════════════════════════════════════════════════════════════


@ideas_bp.route("/units", methods=["GET"])
def list_units():
    return jsonify([unit.to_dict() for unit in UNITS.values()])


@ideas_bp.route("/stages", methods=["GET"])
def list_stages():
    return jsonify({
        "ordered": [stage.value for stage in ORDERED_STAGES],
        "statuses": {stage.value: cfg for stage, cfg in STATUS_CONFIG.items()},
    })


# ═════════════════════════════════════════════════════════════════════════════
# IDEAS
# ═════════════════════════════════════════════════════════════════════════════


@ideas_bp.route("/ideas", methods=["POST"])
def submit_idea():
    idea = services()["pipeline"].submit(json_body())
    return jsonify(_serialize(idea)), 201


@ideas_bp.route("/ideas", methods=["GET"])
def list_ideas():
    ideas = services()["feed"].ideas
    university = _university_arg()
    status = request.args.get("status")
    unit = request.args.get("unit")

    if status:
        if Stage.coerce(status) is None:
            raise ValidationError(f"Unknown status '{status}'", details={"status": "invalid"})
        ideas = idea_queries.ideas_by_status(ideas, status, university)
    elif university:
        ideas = [i for i in ideas if i.university == university]
    if unit:
        ideas = idea_queries.ideas_for_unit(ideas, get_unit(unit).id)

    page, total = paginate_items(ideas)
    return jsonify({"items": [_serialize(i) for i in page], "total": total})


@ideas_bp.route("/ideas/<idea_id>", methods=["GET"])
def get_idea(idea_id):
    return jsonify(_serialize(services()["pipeline"].get_idea(idea_id)))


@ideas_bp.route("/ideas/<idea_id>/approve", methods=["POST"])
def approve_idea(idea_id):
    # Body is optional for approve
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    idea = services()["pipeline"].approve(
        idea_id,
        notes=data.get("notes") or "",
        actor_name=current_actor(),
        membership=current_membership(),
    )
    return jsonify(_serialize(idea))


@ideas_bp.route("/ideas/<idea_id>/return", methods=["POST"])
def return_idea(idea_id):
    data = json_body()
    idea = services()["pipeline"].return_idea(
        idea_id,
        data.get("reason"),
        actor_name=current_actor(),
        membership=current_membership(),
    )
    return jsonify(_serialize(idea))


@ideas_bp.route("/ideas/<idea_id>/reject", methods=["POST"])
def reject_idea(idea_id):
    data = json_body()
    idea = services()["pipeline"].reject(
        idea_id,
        data.get("reason"),
        actor_name=current_actor(),
        membership=current_membership(),
    )
    return jsonify(_serialize(idea))


@ideas_bp.route("/ideas/<idea_id>/publish", methods=["POST"])
def publish_idea(idea_id):
    data = json_body()
    idea = services()["pipeline"].publish(
        idea_id,
        data,
        actor_name=current_actor("Systems Unit"),
        membership=current_membership(),
    )
    return jsonify(_serialize(idea))


@ideas_bp.route("/ideas/<idea_id>/verification", methods=["POST"])
def start_verification(idea_id):
    idea = services()["pipeline"].start_verification(
        idea_id,
        actor_name=current_actor("Passport Unit"),
        membership=current_membership(),
    )
    return jsonify(_serialize(idea))


@ideas_bp.route("/ideas/<idea_id>/ancillary-link", methods=["PUT"])
def update_ancillary_link(idea_id):
    data = json_body()
    idea = services()["pipeline"].update_ancillary_link(
        idea_id,
        data.get("link"),
        membership=current_membership(),
    )
    return jsonify(_serialize(idea))


# ═════════════════════════════════════════════════════════════════════════════
# UNIT QUEUES & LOBBY
# ═════════════════════════════════════════════════════════════════════════════


@ideas_bp.route("/units/<unit_id>/ideas", methods=["GET"])
def unit_ideas(unit_id):
    unit = get_unit(unit_id)
    ideas = idea_queries.ideas_for_unit(services()["feed"].ideas, unit.id, _university_arg())
    return jsonify({"unit": unit.id, "items": [_serialize(i) for i in ideas], "total": len(ideas)})


@ideas_bp.route("/units/<unit_id>/pending-count", methods=["GET"])
def unit_pending_count(unit_id):
    unit = get_unit(unit_id)
    count = idea_queries.pending_count_for_unit(services()["feed"].ideas, unit.id, _university_arg())
    return jsonify({"unit": unit.id, "pending": count})


@ideas_bp.route("/lobby/<university>", methods=["GET"])
def lobby(university):
    view = request.args.get("filter", "all")
    ideas = idea_queries.ideas_for_lobby(services()["feed"].ideas, university, view)
    return jsonify({
        "university": university,
        "filter": view if view in idea_queries.LOBBY_FILTERS else "all",
        "items": [_serialize(i) for i in ideas],
        "total": len(ideas),
    })
