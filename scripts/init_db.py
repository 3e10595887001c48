"""Initialize the database for the photo planner."""
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from photoplanner.config import get_settings
from photoplanner.database import engine, init_db


def main() -> None:
    """Create all tables on the configured database."""
    init_db(engine)
    print(f"Database initialized at {get_settings().database_url}")


if __name__ == "__main__":
    main()
