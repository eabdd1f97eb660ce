"""Projects CLI sub-commands."""

import typer

app = typer.Typer(no_args_is_help=True)


@app.command("jobs")
def jobs_cmd(
    show_all: bool = typer.Option(False, "--all", "-a", help="Include jobs that do not qualify for scheduling"),
    output_format: str = typer.Option("human", "--format", "-f", help="Output format: human | json | markdown"),
):
    """List jobs with their budgeted field hours."""
    from crewplan.core import get_db
    from crewplan.core.output import OutputFormat, format_table
    from crewplan.projects.jobs import load_jobs_cached, qualifying_jobs

    with get_db(readonly=True) as conn:
        jobs = list(load_jobs_cached(conn).values())
    if not show_all:
        jobs = qualifying_jobs(jobs)

    rows = [job.to_dict() for job in jobs]
    typer.echo(format_table(
        rows,
        [
            ("job_key", "Job"),
            ("status", "Status"),
            ("total_budgeted_hours", "Budget Hrs"),
            ("cost_line_count", "Lines"),
        ],
        OutputFormat(output_format),
    ))


@app.command("phases")
def phases_cmd(
    job_key: str = typer.Argument(..., help="Job key (customer~number~name)"),
    strategy: str = typer.Option(None, "--match", "-m", help="Match strategy: substring | exact | key"),
    output_format: str = typer.Option("human", "--format", "-f", help="Output format: human | json | markdown"),
):
    """Show a job's phases reconciled against its cost lines.

    Jobs without explicit phases show virtual phases built from cost-line
    groups.
    """
    from crewplan.core import get_db
    from crewplan.core.output import OutputFormat, format_table
    from crewplan.projects.jobs import get_job
    from crewplan.projects.phases import list_phases, phases_for_job

    with get_db(readonly=True) as conn:
        job = get_job(conn, job_key)
        if job is None:
            typer.echo(f"No project found for job key: {job_key}")
            raise typer.Exit(1)
        explicit = list_phases(conn, job.key)

    try:
        phases = phases_for_job(job.key, explicit, job.cost_lines, strategy)
    except ValueError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(1)

    typer.echo(format_table(
        [p.to_dict() for p in phases],
        [
            ("title", "Phase"),
            ("start_date", "Start"),
            ("end_date", "End"),
            ("manpower", "Crew"),
            ("hours", "Hours"),
            ("virtual", "Virtual"),
        ],
        OutputFormat(output_format),
    ))


@app.command("add-phase")
def add_phase_cmd(
    job_key: str = typer.Argument(..., help="Job key (customer~number~name)"),
    title: str = typer.Argument(..., help="Phase title"),
    start: str = typer.Option(None, "--start", help="Start date YYYY-MM-DD"),
    end: str = typer.Option(None, "--end", help="End date YYYY-MM-DD"),
    manpower: float = typer.Option(None, "--manpower", help="Crew size; derives hours when dated"),
    hours: float = typer.Option(None, "--hours", help="Budgeted hours (overrides manpower-derived)"),
):
    """Create a work phase on a job."""
    from crewplan.core import get_db
    from crewplan.projects.jobs import get_job
    from crewplan.projects.phases import create_phase, get_phase

    with get_db() as conn:
        if get_job(conn, job_key) is None:
            typer.echo(f"No project found for job key: {job_key}")
            raise typer.Exit(1)
        phase_id = create_phase(conn, job_key, title, start, end, manpower=manpower, hours=hours)
        phase = get_phase(conn, phase_id)

    typer.echo(f"Created phase {phase_id}: {phase.title} ({phase.hours or 0:.1f} hrs)")
