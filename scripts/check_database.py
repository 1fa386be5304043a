#!/usr/bin/env python3
"""
Check database state: table counts and the most recent visits.
"""

import sys
from pathlib import Path

parent_dir = str(Path(__file__).parent.parent)
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

from barbaros.database.db_manager import DatabaseManager
from barbaros.config.paths import DB_PATH


def main():
    print("=" * 60)
    print("DATABASE CHECK")
    print("=" * 60)
    print(f"Database path: {DB_PATH}")
    print(f"Database exists: {DB_PATH.exists()}")
    print()

    if not DB_PATH.exists():
        print("[ERROR] Database file does not exist!")
        print("Run: python -m barbaros.main")
        return

    with DatabaseManager() as db:
        if not db.is_initialized():
            print("[ERROR] Database is missing tables!")
            return

        for table in ('clients', 'visits', 'rewards', 'admins', 'service_categories', 'services'):
            count = db.execute_query(f"SELECT COUNT(*) AS count FROM {table}")[0]['count']
            print(f"{table.capitalize():<20} {count:>6}")
        print()

        with_badge = db.execute_query(
            "SELECT COUNT(*) AS count FROM clients WHERE qr_code_id IS NOT NULL"
        )[0]['count']
        print(f"Clients with an issued QR badge: {with_badge}")
        print()

        print("=" * 60)
        print("RECENT VISITS (Last 5)")
        print("=" * 60)

        recent = db.execute_query("""
            SELECT c.client_id, c.first_name, c.last_name, v.visit_number, v.barber, v.visit_date
            FROM visits v JOIN clients c ON c.id = v.client_id
            ORDER BY v.visit_date DESC
            LIMIT 5
        """)
        if not recent:
            print("  No visits recorded yet.")
        for row in recent:
            print(f"  {row['client_id']} {row['first_name']} {row['last_name']}: "
                  f"visit #{row['visit_number']} with {row['barber']} at {row['visit_date']}")


if __name__ == "__main__":
    main()
