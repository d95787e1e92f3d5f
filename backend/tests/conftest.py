import os

# The app module creates tables and may seed on import; keep both off disk.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_SEED_ON_EMPTY", "false")
