"""
Schedule Blueprint - JSON routes for the schedule board and phase editor.

Thin delivery layer: business logic lives in crewplan.schedule and
crewplan.projects.phases.
"""

from flask import Blueprint, jsonify, request

from crewplan.core import StaleSheetError, get_db
from crewplan.projects.jobs import coerce_float, get_job, load_jobs_cached, qualifying_jobs
from crewplan.projects.phases import (
    Phase,
    create_phase,
    delete_phase,
    get_match_strategy,
    get_phase,
    list_phases,
    phases_for_job,
    update_phase,
)
from crewplan.schedule.capacity import capacity_for_phase
from crewplan.schedule.dates import BUCKET_MODES, make_buckets
from crewplan.schedule.merge import merge_schedule, schedule_totals
from crewplan.schedule.sheets import save_forecast, set_allocation
from crewplan.schedule.sources import load_all_sources
from crewplan.schedule.sync import get_wip, push_phase_to_crew_sheet, sync_job_wip

bp = Blueprint("schedule", __name__, url_prefix="/schedule")


def _optional_float(value):
    if value in (None, ""):
        return None
    return coerce_float(value)


# ---------------------------------------------------------------------------
# Schedule board
# ---------------------------------------------------------------------------

@bp.route("/api/buckets")
def api_buckets():
    """Merged hours per job for ?mode=&start=&count= (optional &job=)."""
    mode = request.args.get("mode", "week")
    start = request.args.get("start", "")
    count = request.args.get("count", 4, type=int)
    job_key = request.args.get("job")

    if mode not in BUCKET_MODES:
        return jsonify({"error": f"Unknown mode: {mode}"}), 400
    buckets = make_buckets(mode, start, count)
    if not buckets:
        return jsonify({"error": "start must be YYYY-MM-DD and count positive"}), 400
    try:
        strategy = get_match_strategy(request.args.get("match"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    with get_db(readonly=True) as conn:
        jobs = load_jobs_cached(conn)
        if job_key:
            if job_key not in jobs:
                return jsonify({"error": f"Unknown job: {job_key}"}), 404
            jobs = {job_key: jobs[job_key]}
        else:
            jobs = {job.key: job for job in qualifying_jobs(jobs.values())}
        sources = load_all_sources(conn, jobs)

    schedules = merge_schedule(sources.values(), buckets, strategy)
    return jsonify({
        "buckets": [b.to_dict() for b in buckets],
        "jobs": [s.to_dict() for s in schedules.values()],
        "totals": schedule_totals(schedules.values()),
    })


@bp.route("/api/capacity")
def api_capacity():
    """Capacity left on ?date= for a candidate (?phase_id= and/or ?manpower=)."""
    day = request.args.get("date", "")
    phase_id = request.args.get("phase_id")
    manpower = _optional_float(request.args.get("manpower"))
    capacity = _optional_float(request.args.get("capacity"))

    with get_db(readonly=True) as conn:
        if phase_id:
            candidate = get_phase(conn, phase_id)
            if candidate is None:
                return jsonify({"error": "Phase not found"}), 404
            if manpower is not None:
                candidate.manpower = manpower
        else:
            candidate = Phase(id="", job_key="", title="(candidate)", manpower=manpower)
        report = capacity_for_phase(conn, day, candidate, capacity)
    return jsonify(report)


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

@bp.route("/api/phases")
def api_list_phases():
    """A job's reconciled phases (?job=), or every stored phase."""
    job_key = request.args.get("job")
    with get_db(readonly=True) as conn:
        if not job_key:
            return jsonify([p.to_dict() for p in list_phases(conn)])
        jobs = load_jobs_cached(conn)
        if job_key not in jobs:
            return jsonify({"error": f"Unknown job: {job_key}"}), 404
        explicit = list_phases(conn, job_key)
    try:
        phases = phases_for_job(job_key, explicit, jobs[job_key].cost_lines, request.args.get("match"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify([p.to_dict() for p in phases])


@bp.route("/api/phases", methods=["POST"])
def api_create_phase():
    data = request.get_json(silent=True) or {}
    job_key = (data.get("job_key") or "").strip()
    title = (data.get("title") or "").strip()
    if not job_key or not title:
        return jsonify({"error": "job_key and title are required"}), 400

    with get_db() as conn:
        if get_job(conn, job_key) is None:
            return jsonify({"error": f"Unknown job: {job_key}"}), 404
        phase_id = create_phase(
            conn,
            job_key,
            title,
            data.get("start_date"),
            data.get("end_date"),
            manpower=_optional_float(data.get("manpower")),
            hours=_optional_float(data.get("hours")),
            description=data.get("description") or "",
            tasks=data.get("tasks") or [],
        )
        phase = get_phase(conn, phase_id)
        capacity = capacity_for_phase(conn, phase.start_date, phase) if phase.is_dated else None

    return jsonify({"phase": phase.to_dict(), "capacity": capacity}), 201


@bp.route("/api/phases/<phase_id>", methods=["PUT"])
def api_update_phase(phase_id):
    """Update a phase; the response carries a capacity check for its start date."""
    data = request.get_json(silent=True) or {}
    for key in ("manpower", "hours"):
        if key in data:
            data[key] = _optional_float(data[key])

    with get_db() as conn:
        if get_phase(conn, phase_id) is None:
            return jsonify({"error": "Phase not found"}), 404
        update_phase(conn, phase_id, **data)
        phase = get_phase(conn, phase_id)
        capacity = capacity_for_phase(conn, phase.start_date, phase) if phase.is_dated else None

    return jsonify({"phase": phase.to_dict(), "capacity": capacity})


@bp.route("/api/phases/<phase_id>", methods=["DELETE"])
def api_delete_phase(phase_id):
    with get_db() as conn:
        if not delete_phase(conn, phase_id):
            return jsonify({"error": "Phase not found"}), 404
    return jsonify({"ok": True})


@bp.route("/api/phases/<phase_id>/push", methods=["POST"])
def api_push_phase(phase_id):
    """Write the phase's crew hours onto its crew sheets."""
    data = request.get_json(silent=True) or {}
    with get_db() as conn:
        phase = get_phase(conn, phase_id)
        if phase is None:
            return jsonify({"error": "Phase not found"}), 404
        try:
            sheets = push_phase_to_crew_sheet(conn, phase, data.get("crew_leader_id"))
        except StaleSheetError as exc:
            return jsonify({"error": str(exc)}), 409
    return jsonify({"months": [s.month for s in sheets]})


# ---------------------------------------------------------------------------
# Forecasts, allocations, WIP
# ---------------------------------------------------------------------------

@bp.route("/api/forecasts", methods=["PUT"])
def api_save_forecast():
    """Body: {"job_key", "month", "weeks": {"1": hours, ...}}."""
    data = request.get_json(silent=True) or {}
    weeks = data.get("weeks") or {}
    if not data.get("job_key") or not isinstance(weeks, dict):
        return jsonify({"error": "job_key and weeks are required"}), 400
    with get_db() as conn:
        try:
            sheet = save_forecast(conn, data["job_key"], data.get("month", ""), weeks)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify({"job_key": sheet.job_key, "month": sheet.month, "weeks": sheet.to_doc()})


@bp.route("/api/allocations", methods=["PUT"])
def api_set_allocation():
    """Body: {"job_key", "month", "percent"}."""
    data = request.get_json(silent=True) or {}
    if not data.get("job_key"):
        return jsonify({"error": "job_key is required"}), 400
    with get_db() as conn:
        try:
            stored = set_allocation(conn, data["job_key"], data.get("month", ""), data.get("percent"))
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    return jsonify({"job_key": data["job_key"], "month": data["month"], "percent": stored})


@bp.route("/api/sync-wip/<path:job_key>", methods=["POST"])
def api_sync_wip(job_key):
    try:
        strategy = get_match_strategy(request.args.get("match"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    with get_db() as conn:
        result = sync_job_wip(conn, job_key, strategy)
    if result is None:
        return jsonify({"error": f"Unknown job: {job_key}"}), 404
    return jsonify(result)


@bp.route("/api/wip/<path:job_key>")
def api_get_wip(job_key):
    with get_db(readonly=True) as conn:
        wip = get_wip(conn, job_key)
    if wip is None:
        return jsonify({"error": "No WIP rollup for this job"}), 404
    return jsonify(wip)
