"""
crewplan CLI - Main Entry Point

Unified Typer CLI that assembles all module sub-commands.

Usage:
    crewplan version
    crewplan migrate
    crewplan serve
    crewplan projects [command]
    crewplan schedule [command]
    crewplan workforce [command]
"""

import logging

import typer

import crewplan

app = typer.Typer(
    name="crewplan",
    help="Crew capacity scheduling for field construction work.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    if verbose:
        from crewplan.core.logging import set_log_level

        set_log_level(logging.DEBUG)


@app.command()
def version():
    """Show crewplan version."""
    typer.echo(f"crewplan {crewplan.__version__}")


@app.command()
def migrate():
    """Run database schema migrations for all modules."""
    from crewplan.core.db import migrate_all

    migrate_all()
    typer.echo("Database migration complete.")


@app.command()
def serve(
    port: int = typer.Option(5000, "--port", "-p", help="Port number"),
    host: str = typer.Option(None, "--host", "-h", help="Host address (default: 0.0.0.0 prod, 127.0.0.1 debug)"),
    debug: bool = typer.Option(False, "--debug", help="Use Flask dev server with auto-reload (localhost only)"),
    threads: int = typer.Option(8, "--threads", "-t", help="Waitress worker threads (production only)"),
):
    """Launch the scheduling API.

    Default: Waitress production server on 0.0.0.0 (LAN accessible).
    With --debug: Flask dev server on 127.0.0.1 with auto-reload.
    """
    from crewplan.api import create_app

    web = create_app()

    if debug:
        _host = host or "127.0.0.1"
        typer.echo(f"Starting Flask dev server at http://{_host}:{port}")
        web.run(host=_host, port=port, debug=True)
        return

    from waitress import serve as waitress_serve

    _host = host or "0.0.0.0"
    typer.echo(f"Starting Waitress production server on {_host}:{port} ({threads} threads)")
    if _host == "0.0.0.0":
        import socket
        hostname = socket.gethostname()
        typer.echo(f"LAN access: http://{hostname}:{port}")
    waitress_serve(web, host=_host, port=port, threads=threads)


def _register_modules():
    """Register module CLI sub-apps."""
    import importlib

    module_registry = [
        ("crewplan.projects.cli", "projects", "Jobs, cost lines & work phases"),
        ("crewplan.schedule.cli", "schedule", "Merged schedule, capacity & WIP"),
        ("crewplan.workforce.cli", "workforce", "Crew dispatch & availability"),
    ]

    for module_path, name, help_text in module_registry:
        mod = importlib.import_module(module_path)
        app.add_typer(mod.app, name=name, help=help_text)


_register_modules()


def main():
    """Entry point for the crewplan CLI."""
    app()


if __name__ == "__main__":
    main()
