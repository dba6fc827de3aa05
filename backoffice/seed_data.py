"""Manual utility script to initialize the DB, load sample CSV data and default settings."""

from backoffice.database import SessionLocal, bootstrap_database
from backoffice.settings_service import ensure_default_settings


if __name__ == "__main__":
    bootstrap_database(load_seed_data=True)
    db = SessionLocal()
    try:
        added = ensure_default_settings(db)
    finally:
        db.close()
    print(f"Database initialized, sample data loaded, {added} default settings added.")
