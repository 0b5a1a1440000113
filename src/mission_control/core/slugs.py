"""Human-readable record IDs derived from names and titles."""

import re
import sqlite3


def slugify(title: str) -> str:
    """Convert a title to a URL-friendly slug."""
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")[:60]


def unique_id(db: sqlite3.Connection, table: str, title: str, fallback: str) -> str:
    """Generate an ID unique within ``table``, appending a number if needed.

    ``fallback`` is used as the base when the title has no sluggable characters.
    """
    base_slug = slugify(title) or fallback
    query = f"SELECT id FROM {table} WHERE id = ?"
    if not db.execute(query, (base_slug,)).fetchone():
        return base_slug

    i = 2
    while True:
        candidate = f"{base_slug}-{i}"
        if not db.execute(query, (candidate,)).fetchone():
            return candidate
        i += 1
