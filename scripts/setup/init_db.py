# scripts/setup/init_db.py
"""
Initialize database — creates the document table.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text

from catevents.config import settings
from catevents.database import create_tables, engine


def main():
    print("Cat event DB initialization")
    print("=" * 40)
    print(f"Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("Database connection OK")
    except Exception as e:
        print(f"Cannot connect to database: {e}")
        sys.exit(1)

    print("\nCreating tables...")
    create_tables()

    tables = inspect(engine).get_table_names()
    print(f"\nTables in database ({len(tables)} total):")
    for t in tables:
        print(f"   - {t}")

    os.makedirs(settings.EVENT_PATH, exist_ok=True)
    print(f"\nEvent media directory: {os.path.abspath(settings.EVENT_PATH)}")
    print("\nDatabase ready! You can now start the backend:")
    print("   uvicorn catevents.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
