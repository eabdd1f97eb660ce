"""
crewplan - Crew capacity scheduling for field construction work.

Modules:
    core       Config, database, logging, caching, output formatting
    projects   Jobs, cost lines, work phases and phase reconciliation
    schedule   Calendar buckets, hour distribution, merge engine, capacity
    workforce  Workers, time off, crew assignment ledger
    api        Flask blueprints
    cli        Typer entry point
"""

__version__ = "0.1.0"
