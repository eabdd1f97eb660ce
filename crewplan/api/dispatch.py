"""
Dispatch Blueprint - JSON routes for the daily crew board.

Thin delivery layer: business logic lives in crewplan.workforce.
"""

from flask import Blueprint, jsonify, request

from crewplan.core import DispatchError, StaleSheetError, get_db
from crewplan.workforce.dispatch import (
    assign,
    crew_board,
    day_summary,
    dispatch_job,
    load_available_workers,
)
from crewplan.workforce.employees import get_worker
from crewplan.workforce.timeoff import create_time_off, delete_time_off, list_time_off

bp = Blueprint("dispatch", __name__, url_prefix="/dispatch")


@bp.route("/api/available")
def api_available():
    """Workers free on ?date= for crew leader ?leader=."""
    with get_db(readonly=True) as conn:
        try:
            workers = load_available_workers(conn, request.args.get("date"), request.args.get("leader"))
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify([w.to_dict() for w in workers])


@bp.route("/api/assign", methods=["POST"])
def api_assign():
    """Body: {"date", "crew_leader_id", "worker_ids": [...], "job_key"?}."""
    data = request.get_json(silent=True) or {}
    leader = (data.get("crew_leader_id") or "").strip()
    worker_ids = data.get("worker_ids")
    if not leader or not isinstance(worker_ids, list):
        return jsonify({"error": "crew_leader_id and worker_ids are required"}), 400

    with get_db() as conn:
        try:
            result = assign(conn, data.get("date"), leader, worker_ids, job_key=data.get("job_key"))
        except StaleSheetError as exc:
            return jsonify({"error": str(exc)}), 409
        except (DispatchError, ValueError) as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify(result.to_dict())


@bp.route("/api/jobs", methods=["POST"])
def api_dispatch_job():
    """Body: {"date", "job_key", "crew_leader_id" (null unassigns), "hours"?}."""
    data = request.get_json(silent=True) or {}
    if not data.get("job_key"):
        return jsonify({"error": "job_key is required"}), 400

    with get_db() as conn:
        try:
            entry = dispatch_job(
                conn, data.get("date"), data["job_key"], data.get("crew_leader_id"), data.get("hours")
            )
        except StaleSheetError as exc:
            return jsonify({"error": str(exc)}), 409
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify(entry)


@bp.route("/api/board")
def api_board():
    with get_db(readonly=True) as conn:
        try:
            board = crew_board(conn, request.args.get("date"))
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify(board)


@bp.route("/api/summary")
def api_summary():
    with get_db(readonly=True) as conn:
        try:
            summary = day_summary(conn, request.args.get("date"))
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify(summary)


# ---------------------------------------------------------------------------
# Time off
# ---------------------------------------------------------------------------

@bp.route("/api/time-off")
def api_list_time_off():
    worker_id = request.args.get("worker_id")
    with get_db(readonly=True) as conn:
        entries = list_time_off(conn, worker_id=worker_id)
    return jsonify([r.to_dict() for r in entries])


@bp.route("/api/time-off", methods=["POST"])
def api_create_time_off():
    data = request.get_json(silent=True) or {}
    if not data.get("worker_id"):
        return jsonify({"error": "worker_id is required"}), 400
    hours = data.get("hours_per_day")

    with get_db() as conn:
        if get_worker(conn, data["worker_id"]) is None:
            return jsonify({"error": "Worker not found"}), 404
        try:
            request_id = create_time_off(
                conn,
                data["worker_id"],
                data.get("start_date"),
                data.get("end_date"),
                hours_per_day=float(hours) if hours not in (None, "") else None,
                type=data.get("type") or "Vacation",
                notes=data.get("notes"),
            )
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify({"id": request_id}), 201


@bp.route("/api/time-off/<request_id>", methods=["DELETE"])
def api_delete_time_off(request_id):
    with get_db() as conn:
        if not delete_time_off(conn, request_id):
            return jsonify({"error": "Request not found"}), 404
    return jsonify({"ok": True})
