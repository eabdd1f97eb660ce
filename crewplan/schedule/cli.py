"""Schedule CLI sub-commands."""

import typer

app = typer.Typer(no_args_is_help=True)


@app.command("buckets")
def buckets_cmd(
    start: str = typer.Option(..., "--start", "-s", help="Anchor date YYYY-MM-DD"),
    mode: str = typer.Option("week", "--mode", "-m", help="Bucket size: day | week | month"),
    count: int = typer.Option(4, "--count", "-n", help="Number of buckets"),
    job_key: str = typer.Option(None, "--job", "-j", help="Limit to one job key"),
    output_format: str = typer.Option("human", "--format", "-f", help="Output format: human | json | markdown"),
):
    """Merged labor hours per job per bucket.

    Each cell shows the hours and the winning source
    (phase, crew_sheet, forecast, allocation).
    """
    import json

    from crewplan.core import get_db
    from crewplan.core.output import OutputFormat, format_table
    from crewplan.projects.jobs import load_jobs_cached, qualifying_jobs
    from crewplan.schedule.dates import BUCKET_MODES, make_buckets
    from crewplan.schedule.merge import merge_schedule, schedule_totals
    from crewplan.schedule.sources import load_all_sources

    if mode not in BUCKET_MODES:
        typer.echo(f"Unknown mode '{mode}'. Use one of: {', '.join(BUCKET_MODES)}")
        raise typer.Exit(1)
    buckets = make_buckets(mode, start, count)
    if not buckets:
        typer.echo(f"Invalid start date or count: {start} / {count}")
        raise typer.Exit(1)

    with get_db(readonly=True) as conn:
        jobs = load_jobs_cached(conn)
        if job_key:
            if job_key not in jobs:
                typer.echo(f"No project found for job key: {job_key}")
                raise typer.Exit(1)
            jobs = {job_key: jobs[job_key]}
        else:
            jobs = {job.key: job for job in qualifying_jobs(jobs.values())}
        sources = load_all_sources(conn, jobs)

    schedules = merge_schedule(sources.values(), buckets)

    if output_format == "json":
        payload = {
            "buckets": [b.to_dict() for b in buckets],
            "jobs": [s.to_dict() for s in schedules.values()],
            "totals": schedule_totals(schedules.values()),
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    rows = []
    for schedule in schedules.values():
        row = {"job_key": schedule.job_key}
        for value in schedule.buckets:
            row[value.key] = f"{value.hours:.1f} {value.source}" if value.hours else "-"
        rows.append(row)
    totals = schedule_totals(schedules.values())
    rows.append({"job_key": "TOTAL", **{k: f"{v:.1f}" for k, v in totals.items()}})

    columns = [("job_key", "Job")] + [(b.key, b.key) for b in buckets]
    typer.echo(format_table(rows, columns, OutputFormat(output_format)))

    unavailable = sorted({name for s in schedules.values() for name in s.unavailable})
    if unavailable:
        typer.echo(f"\n  ! Could not load: {', '.join(unavailable)}")


@app.command("capacity")
def capacity_cmd(
    day: str = typer.Option(..., "--date", "-d", help="Candidate date YYYY-MM-DD"),
    manpower: float = typer.Option(None, "--manpower", help="Candidate crew size (new phase)"),
    phase_id: str = typer.Option(None, "--phase", "-p", help="Existing phase id to evaluate"),
    capacity: float = typer.Option(None, "--capacity", help="Daily company capacity hours (default: config)"),
    output_format: str = typer.Option("human", "--format", "-f", help="Output format: human | json | markdown"),
):
    """Remaining company field hours on a date if a phase runs then."""
    from dataclasses import replace

    from crewplan.core import get_db
    from crewplan.core.output import OutputFormat, format_result
    from crewplan.projects.phases import Phase, get_phase
    from crewplan.schedule.capacity import capacity_for_phase

    with get_db(readonly=True) as conn:
        if phase_id:
            candidate = get_phase(conn, phase_id)
            if candidate is None:
                typer.echo(f"Phase not found: {phase_id}")
                raise typer.Exit(1)
            if manpower is not None:
                candidate = replace(candidate, manpower=manpower)
        elif manpower is not None:
            candidate = Phase(id="", job_key="", title="(candidate)", manpower=manpower)
        else:
            typer.echo("Provide --phase or --manpower.")
            raise typer.Exit(1)
        report = capacity_for_phase(conn, day, candidate, capacity)

    typer.echo(format_result(report, OutputFormat(output_format), title=f"Capacity {report['date']}"))
    if report["over_committed"]:
        typer.echo(f"\n  ! Over capacity by {-report['remaining_hours']:.1f} hours")


@app.command("sync-wip")
def sync_wip_cmd(
    job_key: str = typer.Argument(None, help="Job key (default: every qualifying job)"),
):
    """Rebuild monthly WIP hours from the merged schedule."""
    from crewplan.core import get_db
    from crewplan.projects.jobs import load_jobs_cached, qualifying_jobs
    from crewplan.schedule.sync import sync_job_wip

    with get_db() as conn:
        if job_key:
            keys = [job_key]
        else:
            keys = [job.key for job in qualifying_jobs(load_jobs_cached(conn).values())]

        synced = 0
        for key in keys:
            result = sync_job_wip(conn, key)
            if result is None:
                typer.echo(f"  skipped (no project): {key}")
                continue
            synced += 1
            typer.echo(f"  {key}: {result['total_hours']:.1f} hrs over {len(result['allocations'])} month(s)")

    if job_key and not synced:
        raise typer.Exit(1)
    typer.echo(f"Synced {synced} job(s).")
