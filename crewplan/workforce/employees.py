"""
Worker lookup for crew dispatch.

Only what the assignment ledger needs: who is active, who leads crews,
and who can be put on one.
"""

import sqlite3
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from crewplan.core import get_workforce_settings


def generate_uuid() -> str:
    """Generate UUID v4 for primary keys."""
    return str(uuid.uuid4())


@dataclass
class Worker:
    id: str
    first_name: str = ""
    last_name: str = ""
    role: str = ""
    is_active: bool = True
    phone: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_row(cls, row: Any) -> "Worker":
        data = dict(row)
        return cls(
            id=str(data["id"]),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            role=data.get("role") or "",
            is_active=bool(data.get("is_active", 1)),
            phone=data.get("phone"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
        }


def _role_in(role: str, roles: Iterable[str]) -> bool:
    wanted = role.strip().lower()
    return any(wanted == r.strip().lower() for r in roles)


def is_field_worker(worker: Worker, roles: Optional[List[str]] = None) -> bool:
    """Active and in a field role (case-insensitive: 'Field worker' counts)."""
    if roles is None:
        roles = get_workforce_settings()["field_roles"]
    return worker.is_active and _role_in(worker.role, roles)


def is_crew_leader(worker: Worker, roles: Optional[List[str]] = None) -> bool:
    if roles is None:
        roles = get_workforce_settings()["crew_leader_roles"]
    return worker.is_active and _role_in(worker.role, roles)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def create_worker(
    conn: sqlite3.Connection,
    first_name: str,
    last_name: str,
    role: str = "Field Worker",
    is_active: bool = True,
    phone: Optional[str] = None,
    worker_id: Optional[str] = None,
) -> str:
    """Create a worker. Returns the worker id."""
    worker_id = worker_id or generate_uuid()
    conn.execute(
        """INSERT INTO workers (id, first_name, last_name, role, is_active, phone)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (worker_id, first_name, last_name, role, 1 if is_active else 0, phone),
    )
    conn.commit()
    return worker_id


def get_worker(conn: sqlite3.Connection, worker_id: str) -> Optional[Worker]:
    row = conn.execute("SELECT * FROM workers WHERE id = ?", (worker_id,)).fetchone()
    return Worker.from_row(row) if row else None


def list_workers(conn: sqlite3.Connection, active_only: bool = True) -> List[Worker]:
    sql = "SELECT * FROM workers"
    if active_only:
        sql += " WHERE is_active = 1"
    rows = conn.execute(sql + " ORDER BY last_name, first_name").fetchall()
    return [Worker.from_row(r) for r in rows]


def list_crew_leaders(conn: sqlite3.Connection) -> List[Worker]:
    roles = get_workforce_settings()["crew_leader_roles"]
    return [w for w in list_workers(conn) if is_crew_leader(w, roles)]


def list_field_workers(conn: sqlite3.Connection) -> List[Worker]:
    roles = get_workforce_settings()["field_roles"]
    return [w for w in list_workers(conn) if is_field_worker(w, roles)]


def set_worker_active(conn: sqlite3.Connection, worker_id: str, is_active: bool) -> bool:
    cursor = conn.execute(
        "UPDATE workers SET is_active = ? WHERE id = ?", (1 if is_active else 0, worker_id)
    )
    conn.commit()
    return cursor.rowcount > 0
