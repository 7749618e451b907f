import argparse
import json
import os
import sqlite3
import uuid
from datetime import datetime, timedelta
from pathlib import Path

from werkzeug.security import generate_password_hash

from edu_hub.app.config import BREAK_MINUTES
from edu_hub.app.services.db_service import connect, init_db
from edu_hub.app.services.schedule_service import adjust_end_time, parse_clock


def _now_iso(delta: timedelta = timedelta(0)) -> str:
    return (datetime.utcnow() - delta).isoformat(timespec="seconds")


def _table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def _insert(conn: sqlite3.Connection, table: str, row: dict) -> None:
    cols = _table_columns(conn, table)
    payload = {k: v for k, v in row.items() if k in cols}
    if not payload:
        return
    keys = list(payload.keys())
    placeholders = ", ".join(["?"] * len(keys))
    sql = f"INSERT OR IGNORE INTO {table} ({', '.join(keys)}) VALUES ({placeholders})"
    conn.execute(sql, [payload[k] for k in keys])


def _account(conn: sqlite3.Connection, email: str, full_name: str, role: str, password: str) -> str:
    user_id = uuid.uuid4().hex
    _insert(
        conn,
        "auth_users",
        {
            "id": user_id,
            "email": email,
            "password_hash": generate_password_hash(password),
            "user_metadata": json.dumps({"full_name": full_name, "role": role}),
            "created_at": _now_iso(),
        },
    )
    _insert(conn, "profiles", {"id": user_id, "full_name": full_name, "role": role, "created_at": _now_iso()})
    return user_id


def seed(db_path: Path) -> None:
    init_db(db_path)

    conn = connect(db_path)
    try:
        mehta = _account(conn, "mehta@example.com", "Dr. R. Mehta", "faculty", "faculty123")
        sharma = _account(conn, "sharma@example.com", "Prof. S. Sharma", "faculty", "faculty123")
        _account(conn, "aarav@example.com", "Aarav Singh", "student", "student123")
        _account(conn, "isha@example.com", "Isha Verma", "student", "student123")

        resources = [
            ("Introduction to Algorithms", "Lecture notes for weeks 1-4", "https://example.com/algo-notes.pdf", mehta),
            ("Linear Algebra Problem Set", None, "https://example.com/linalg-ps1.pdf", sharma),
            ("Operating Systems Slides", "Processes, threads and scheduling", "https://example.com/os-slides", mehta),
        ]
        for i, (title, description, link, owner) in enumerate(resources):
            _insert(
                conn,
                "resources",
                {
                    "id": uuid.uuid4().hex,
                    "title": title,
                    "description": description,
                    "link": link,
                    "uploaded_by": owner,
                    "created_at": _now_iso(timedelta(days=i)),
                },
            )

        scholarships = [
            ("Merit Scholarship", "Top 5% of each batch, full tuition waiver.", "https://example.com/merit", mehta),
            ("Women in STEM Grant", "Rs. 50,000 per year for women in engineering.", "https://example.com/stem", sharma),
        ]
        for i, (name, description, link, owner) in enumerate(scholarships):
            _insert(
                conn,
                "scholarships",
                {
                    "id": uuid.uuid4().hex,
                    "name": name,
                    "description": description,
                    "link": link,
                    "added_by": owner,
                    "created_at": _now_iso(timedelta(days=i)),
                },
            )

        classes = [
            ("Monday", "09:00", "10:00", "Algorithms", mehta),
            ("Monday", "11:00", "12:00", "Linear Algebra", sharma),
            ("Wednesday", "10:00", "11:00", "Operating Systems", mehta),
            ("Friday", "14:00", "15:30", "Linear Algebra Tutorial", sharma),
        ]
        for day, start, end, subject, owner in classes:
            _insert(
                conn,
                "timetable",
                {
                    "id": uuid.uuid4().hex,
                    "day": day,
                    "start_time": start,
                    "end_time": str(adjust_end_time(parse_clock(end), BREAK_MINUTES)),
                    "subject": subject,
                    "faculty_id": owner,
                    "created_at": _now_iso(),
                },
            )

        conn.commit()
    finally:
        conn.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a demo EduHub database.")
    parser.add_argument(
        "--db",
        default=str(Path(__file__).with_name("eduhub.db")),
        help="Path to sqlite db file (default: ./eduhub.db)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing db file if it exists",
    )
    args = parser.parse_args()

    db_path = Path(args.db).resolve()
    if db_path.exists():
        if not args.force:
            raise SystemExit(
                f"DB already exists at {db_path}. Re-run with --force to overwrite."
            )
        os.remove(db_path)

    seed(db_path)
    print(f"Dummy database created at: {db_path}")
    print("Login credentials:")
    print("- Faculty: mehta@example.com / faculty123, sharma@example.com / faculty123")
    print("- Students: aarav@example.com / student123, isha@example.com / student123")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
