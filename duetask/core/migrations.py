from pathlib import Path
import logging
import threading
import time

from alembic import command
from alembic.config import Config

from duetask.db import BuildAdminConnectionUrl, _read_int_env

logger = logging.getLogger("app.migrations")

ROOT_DIR = Path(__file__).resolve().parents[2]


def BuildAlembicConfig() -> Config:
    config_path = ROOT_DIR / "alembic.ini"
    if not config_path.exists():
        raise RuntimeError("Missing alembic.ini for migrations")
    alembic_cfg = Config(str(config_path))
    alembic_cfg.set_main_option("sqlalchemy.url", BuildAdminConnectionUrl())
    alembic_cfg.set_main_option("script_location", str(ROOT_DIR / "alembic"))
    return alembic_cfg


def RunMigrations(revision: str = "head") -> None:
    """Upgrade the schema, logging progress while alembic holds the connection."""
    alembic_cfg = BuildAlembicConfig()
    timeout_seconds = _read_int_env("MIGRATIONS_TIMEOUT_SECONDS", 600)
    progress_seconds = _read_int_env("MIGRATIONS_PROGRESS_LOG_SECONDS", 20)
    logger.info("upgrading schema to %s", revision)

    failures: list[BaseException] = []
    upgrade = threading.Thread(
        target=_Upgrade,
        args=(alembic_cfg, revision, failures),
        name="alembic-upgrade",
        daemon=True,
    )
    started = time.monotonic()
    upgrade.start()
    while True:
        upgrade.join(progress_seconds)
        if not upgrade.is_alive():
            break
        elapsed = int(time.monotonic() - started)
        if timeout_seconds > 0 and elapsed >= timeout_seconds:
            raise TimeoutError(f"schema upgrade to {revision} still running after {elapsed}s")
        logger.info("schema upgrade to %s running for %ss", revision, elapsed)

    if failures:
        raise RuntimeError(f"schema upgrade to {revision} failed") from failures[0]
    logger.info("schema is at %s", revision)


def _Upgrade(alembic_cfg: Config, revision: str, failures: list) -> None:
    try:
        command.upgrade(alembic_cfg, revision)
    except Exception as exc:  # noqa: BLE001
        logger.exception("schema upgrade to %s failed", revision)
        failures.append(exc)


if __name__ == "__main__":
    from duetask.core.logging import setup_logging

    setup_logging()
    RunMigrations()
