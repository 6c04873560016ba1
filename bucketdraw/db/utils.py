from pathlib import Path

from sqlalchemy.engine import make_url


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Anchor a relative SQLite database path at ``project_root``.

    Any SQLite driver form is accepted (``sqlite:///./draws.db``,
    ``sqlite+pysqlite:///draws.db``). Absolute paths, in-memory databases and
    non-SQLite URLs are returned unchanged.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return url
    database = parsed.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return url
    path = Path(database)
    if path.is_absolute():
        return url
    resolved = parsed.set(database=str((project_root / path).resolve()))
    return resolved.render_as_string(hide_password=False)
