from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from vrfraffle.db.engine import make_engine
from vrfraffle.models import Base


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def missing_raffle_tables() -> list[str]:
    """Return the raffle tables declared by the models but absent from the database."""
    existing = set(inspect(make_engine()).get_table_names())
    return sorted(set(Base.metadata.tables) - existing)


def main() -> None:
    upgrade_db()
    missing = missing_raffle_tables()
    if missing:
        raise SystemExit(f"Migrations did not create: {', '.join(missing)}")
    print("Raffle tables ready:", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    main()
