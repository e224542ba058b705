"""Create the locations table for the ResolvedLocation store. Run once after the database is up."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
from app.config import get_settings
from tools.location_store import LocationStore


def main():
    s = get_settings()
    store = LocationStore.from_url(s.database_url)
    store.create_schema()
    print(f"DB initialized: table locations ready ({store.engine.url.render_as_string(hide_password=True)}).")


if __name__ == "__main__":
    main()
