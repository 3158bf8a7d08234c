"""
Startup diagnostics — runs once when the Flask app starts.

Checks database connectivity and logs a summary banner.
"""

import logging
import sys

from flask import Flask
from sqlalchemy import inspect as sa_inspect

from dtplanner.models import db

logger = logging.getLogger(__name__)

ENGINE_TABLES = frozenset({
    "stakeholders",
    "section_approvals",
    "approval_workflows",
    "question_stakeholder_assignments",
})


def missing_engine_tables() -> list[str]:
    """Engine tables absent from the bound database, sorted. Needs an app context."""
    return sorted(ENGINE_TABLES - set(sa_inspect(db.engine).get_table_names()))


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = "FAILED"
            issues.append(f"Database unreachable: {exc}")

        # ── Engine tables ────────────────────────────────────────────
        try:
            missing = missing_engine_tables()
            if missing:
                issues.append(f"Missing tables {missing}: run 'flask db upgrade'")
            table_status = "ok" if not missing else f"{len(missing)} missing"
        except Exception:
            table_status = "?"

        banner = f"""
╔══════════════════════════════════════════════════════════════╗
║  SOW Approval Engine — Startup Diagnostics                   ║
╠══════════════════════════════════════════════════════════════╣
║  Python      : {py:<46s}║
║  Debug       : {str(app.debug):<46s}║
║  Database    : {f'{db_type} ({db_status})':<46s}║
║  Tables      : {table_status:<46s}║
╚══════════════════════════════════════════════════════════════╝"""
        logger.info(banner)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  ⚠ %s", issue)
        else:
            logger.info("All startup checks passed")
