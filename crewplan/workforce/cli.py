"""Workforce CLI sub-commands."""

from typing import List

import typer

app = typer.Typer(no_args_is_help=True)


@app.command("available")
def available_cmd(
    day: str = typer.Option(..., "--date", "-d", help="Date YYYY-MM-DD"),
    leader: str = typer.Option(None, "--leader", "-l", help="Crew leader id (their own crew stays available)"),
):
    """List field workers free to join a crew on a date."""
    from crewplan.core import get_db
    from crewplan.workforce.dispatch import load_available_workers

    with get_db(readonly=True) as conn:
        try:
            workers = load_available_workers(conn, day, leader)
        except ValueError as exc:
            typer.echo(f"Error: {exc}")
            raise typer.Exit(1)

    if not workers:
        typer.echo("No available workers.")
        return
    typer.echo(f"\n  {len(workers)} available on {day}")
    for worker in workers:
        typer.echo(f"    {worker.id:<38} {worker.name}")


@app.command("assign")
def assign_cmd(
    day: str = typer.Option(..., "--date", "-d", help="Date YYYY-MM-DD"),
    leader: str = typer.Option(..., "--leader", "-l", help="Crew leader id"),
    workers: List[str] = typer.Argument(..., help="Worker ids for the crew"),
    job_key: str = typer.Option(None, "--job", "-j", help="Job to dispatch the leader to first"),
):
    """Set a crew leader's crew for a date.

    Workers already on another crew that day are reported and left off.
    """
    from crewplan.core import CrewplanError, get_db
    from crewplan.workforce.dispatch import assign

    with get_db() as conn:
        try:
            result = assign(conn, day, leader, workers, job_key=job_key)
        except (ValueError, CrewplanError) as exc:
            typer.echo(f"Error: {exc}")
            raise typer.Exit(1)

    typer.echo(f"Assigned {len(result.accepted)} to {leader} on {day}: {', '.join(result.accepted) or '(none)'}")
    if result.rejected:
        typer.echo(f"  ! Already on another crew: {', '.join(result.rejected)}")


@app.command("board")
def board_cmd(
    day: str = typer.Option(..., "--date", "-d", help="Date YYYY-MM-DD"),
    output_format: str = typer.Option("human", "--format", "-f", help="Output format: human | json"),
):
    """Daily crew dispatch board with company totals."""
    import json

    from crewplan.core import get_db
    from crewplan.workforce.dispatch import crew_board, day_summary

    with get_db(readonly=True) as conn:
        try:
            board = crew_board(conn, day)
            summary = day_summary(conn, day)
        except ValueError as exc:
            typer.echo(f"Error: {exc}")
            raise typer.Exit(1)

    if output_format == "json":
        typer.echo(json.dumps({"board": board, "summary": summary}, indent=2))
        return

    typer.echo(f"\n  Dispatch board {board['date']}")
    typer.echo(
        f"  Capacity {summary['capacity_hours']:.0f} h  |  "
        f"Scheduled {summary['scheduled_hours']:.0f} h  |  "
        f"Assigned {summary['assigned_workers']} workers ({summary['assigned_hours']:.0f} h)"
    )
    for leader in board["leaders"]:
        typer.echo(f"\n  {leader['name'] or leader['id']}  ({leader['scheduled_hours']:.0f} h)")
        for job in leader["jobs"]:
            typer.echo(f"    {job['job_key']:<50} {job['hours']:>6.1f}")
        typer.echo(f"    crew: {', '.join(leader['worker_ids']) or '(none)'}")
    if board["unassigned"]:
        typer.echo("\n  Unassigned")
        for job in board["unassigned"]:
            typer.echo(f"    {job['job_key']:<50} {job['hours']:>6.1f}  [{job['source']}]")
    if summary["people_off"]:
        typer.echo("\n  Off today")
        for person in summary["people_off"]:
            typer.echo(f"    {person['name']:<30} {person['hours']:>4.0f} h  {person['type']}")
