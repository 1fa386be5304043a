import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("BARBAROS_HOME", Path(__file__).resolve().parents[2]))
DATA_DIR = BASE_DIR / "data"
BADGES_DIR = DATA_DIR / "badges"
DB_DIR = DATA_DIR / "database"
LOG_DIR = BASE_DIR / "logs"

# Database path
DB_PATH = DB_DIR / "barbaros.db"

# Create directories
BADGES_DIR.mkdir(parents=True, exist_ok=True)
DB_DIR.mkdir(parents=True, exist_ok=True)
LOG_DIR.mkdir(parents=True, exist_ok=True)
