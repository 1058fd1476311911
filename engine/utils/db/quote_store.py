"""
Quote persistence for the quote engine.

Stores comparison groups, quotes and quote items and reads a group's quotes
back with their items nested. Works with both PostgreSQL and the mock
in-memory backend; both give the same ordering and cascade behaviour.

schema
- comparison_groups: (id, name, created_at)
- quotes: (id, group_id -> comparison_groups ON DELETE CASCADE, name, company, total_amount, created_at)
- quote_items: (id, quote_id -> quotes ON DELETE CASCADE, position, category, description,
               quantity, unit, unit_price, amount)
"""

import uuid
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Dict, Iterable, List, Optional

from utils.db import connection
from utils.core.errors import StorageError
from utils.core.log import get_logger

ITEM_FIELDS = ("category", "description", "quantity", "unit", "unit_price", "amount")


def _generate_id() -> str:
    return str(uuid.uuid4())


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _use_postgres() -> bool:
    return connection.DB_TYPE == "postgres"


def _serialize(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out.pop("seq", None)
    for key, value in out.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, uuid.UUID):
            out[key] = str(value)
    return out


def _item_rows(quote_id: str, items: Iterable[Dict[str, Any]], start: int = 0) -> List[Dict[str, Any]]:
    rows = []
    for position, item in enumerate(items, start=start):
        row = {"id": _generate_id(), "quote_id": quote_id, "position": position}
        for field in ITEM_FIELDS:
            row[field] = item.get(field)
        rows.append(row)
    return rows


def _check_item_rows(rows: List[Dict[str, Any]]) -> None:
    """Mirror the NOT NULL / numeric constraints of quote_items for the mock store."""
    for row in rows:
        amount = row.get("amount")
        if amount is None or isinstance(amount, bool) or not isinstance(amount, Real):
            raise StorageError(
                f"Failed to save quote items: invalid amount {amount!r} at position {row['position']}"
            )
        if row.get("category") is None:
            raise StorageError(
                f"Failed to save quote items: missing category at position {row['position']}"
            )


_INSERT_ITEM_SQL = """
    INSERT INTO quote_items
        (id, quote_id, position, category, description, quantity, unit, unit_price, amount)
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
"""


def _insert_items(cur, rows: List[Dict[str, Any]]) -> None:
    cur.executemany(
        _INSERT_ITEM_SQL,
        [
            (
                r["id"], r["quote_id"], r["position"], r["category"], r["description"] or "",
                r["quantity"], r["unit"], r["unit_price"], r["amount"],
            )
            for r in rows
        ],
    )


# Groups
def create_group(name: str) -> Dict[str, Any]:
    log = get_logger()
    group = {"id": _generate_id(), "name": name, "created_at": _utcnow_naive()}

    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "INSERT INTO comparison_groups (id, name, created_at) VALUES (%s, %s, %s) RETURNING *",
                    (group["id"], name, group["created_at"]),
                )
                row = cur.fetchone()
            conn.commit()
        except Exception as e:
            conn.rollback()
            log.error(f"Failed to create group: {e}")
            raise StorageError(f"Failed to create group: {e}") from e
        finally:
            conn.close()
        group = _serialize(row)
    else:
        group = _serialize(group)
        connection._mock_db["comparison_groups"][group["id"]] = group

    log.info(f"Created comparison group {group['id']} ({name})")
    return dict(group)


def list_groups() -> List[Dict[str, Any]]:
    """All groups, newest first."""
    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM comparison_groups ORDER BY created_at DESC, seq DESC")
                return [_serialize(r) for r in cur.fetchall()]
        except Exception as e:
            get_logger().error(f"Failed to list groups: {e}")
            raise StorageError(f"Failed to list groups: {e}") from e
        finally:
            conn.close()

    groups = list(connection._mock_db["comparison_groups"].values())
    indexed = list(enumerate(groups))
    indexed.sort(key=lambda pair: (pair[1]["created_at"], pair[0]), reverse=True)
    return [dict(g) for _, g in indexed]


def get_group(group_id: str) -> Optional[Dict[str, Any]]:
    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM comparison_groups WHERE id = %s", (group_id,))
                row = cur.fetchone()
                return _serialize(row) if row else None
        except Exception as e:
            get_logger().error(f"Failed to get group {group_id}: {e}")
            raise StorageError(f"Failed to get group: {e}") from e
        finally:
            conn.close()

    group = connection._mock_db["comparison_groups"].get(group_id)
    return dict(group) if group else None


def delete_group(group_id: str) -> bool:
    """
    Delete a group with all its quotes and items (DB uses ON DELETE CASCADE).
    Returns False if the group does not exist.
    """
    log = get_logger()
    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM comparison_groups WHERE id = %s", (group_id,))
                deleted = cur.rowcount
            conn.commit()
        except Exception as e:
            conn.rollback()
            log.error(f"Failed to delete group {group_id}: {e}")
            raise StorageError(f"Failed to delete group: {e}") from e
        finally:
            conn.close()
    else:
        db = connection._mock_db
        deleted = 0
        if group_id in db["comparison_groups"]:
            quote_ids = [q["id"] for q in db["quotes"].values() if q["group_id"] == group_id]
            for quote_id in quote_ids:
                _mock_delete_quote(quote_id)
            del db["comparison_groups"][group_id]
            deleted = 1

    if deleted:
        log.info(f"Deleted comparison group {group_id}")
    return deleted > 0


# Quotes
def save_quote(
    group_id: str,
    file_name: str,
    company: str,
    total_amount: float,
    items: Iterable[Dict[str, Any]] = (),
) -> Dict[str, Any]:
    """
    Insert a quote and its items in one transaction.

    Either the quote row and every item row are stored, or nothing is.

    Returns:
        The stored quote with an "items" list in insertion order.

    Raises:
        StorageError: unknown group or any rejected row.
    """
    log = get_logger()
    quote = {
        "id": _generate_id(),
        "group_id": group_id,
        "name": file_name,
        "company": company,
        "total_amount": total_amount,
        "created_at": _utcnow_naive(),
    }
    rows = _item_rows(quote["id"], items)

    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO quotes (id, group_id, name, company, total_amount, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (
                        quote["id"], group_id, file_name, company,
                        total_amount, quote["created_at"],
                    ),
                )
                stored = _serialize(cur.fetchone())
                if rows:
                    _insert_items(cur, rows)
            conn.commit()
        except Exception as e:
            conn.rollback()
            log.error(f"Failed to save quote {file_name}: {e}")
            raise StorageError(f"Failed to save quote: {e}") from e
        finally:
            conn.close()
    else:
        db = connection._mock_db
        if group_id not in db["comparison_groups"]:
            raise StorageError(f"Failed to save quote: comparison group {group_id} does not exist")
        _check_item_rows(rows)
        stored = _serialize(quote)
        db["quotes"][stored["id"]] = stored
        for row in rows:
            db["quote_items"][row["id"]] = dict(row)

    log.info(f"Saved quote {stored['id']} ({company}) with {len(rows)} items")
    stored = dict(stored)
    stored["items"] = [dict(r) for r in rows]
    return stored


def save_items(quote_id: str, items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Append items to an existing quote; all-or-nothing per call.

    Raises:
        StorageError: unknown quote or any rejected row.
    """
    log = get_logger()

    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT COALESCE(MAX(position) + 1, 0) AS next FROM quote_items WHERE quote_id = %s",
                    (quote_id,),
                )
                rows = _item_rows(quote_id, items, start=cur.fetchone()["next"])
                if rows:
                    _insert_items(cur, rows)
            conn.commit()
        except Exception as e:
            conn.rollback()
            log.error(f"Failed to save items for quote {quote_id}: {e}")
            raise StorageError(f"Failed to save quote items: {e}") from e
        finally:
            conn.close()
    else:
        db = connection._mock_db
        if quote_id not in db["quotes"]:
            raise StorageError(f"Failed to save quote items: quote {quote_id} does not exist")
        existing = [i for i in db["quote_items"].values() if i["quote_id"] == quote_id]
        start = max((i["position"] for i in existing), default=-1) + 1
        rows = _item_rows(quote_id, items, start=start)
        _check_item_rows(rows)
        for row in rows:
            db["quote_items"][row["id"]] = dict(row)

    log.debug(f"Saved {len(rows)} items for quote {quote_id}")
    return [dict(r) for r in rows]


def load_group_quotes(group_id: str) -> List[Dict[str, Any]]:
    """
    A group's quotes, oldest first, each with its items in insertion order.
    """
    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT * FROM quotes WHERE group_id = %s ORDER BY created_at ASC, seq ASC",
                    (group_id,),
                )
                quotes = [_serialize(r) for r in cur.fetchall()]
                if not quotes:
                    return []
                cur.execute(
                    """
                    SELECT * FROM quote_items
                    WHERE quote_id = ANY(%s::uuid[])
                    ORDER BY position ASC
                    """,
                    ([q["id"] for q in quotes],),
                )
                items = [_serialize(r) for r in cur.fetchall()]
        except Exception as e:
            get_logger().error(f"Failed to load quotes for group {group_id}: {e}")
            raise StorageError(f"Failed to load quotes: {e}") from e
        finally:
            conn.close()
    else:
        db = connection._mock_db
        indexed = [
            (idx, q) for idx, q in enumerate(db["quotes"].values()) if q["group_id"] == group_id
        ]
        indexed.sort(key=lambda pair: (pair[1]["created_at"], pair[0]))
        quotes = [dict(q) for _, q in indexed]
        wanted = {q["id"] for q in quotes}
        items = sorted(
            (dict(i) for i in db["quote_items"].values() if i["quote_id"] in wanted),
            key=lambda i: i["position"],
        )

    by_quote: Dict[str, List[Dict[str, Any]]] = {q["id"]: [] for q in quotes}
    for item in items:
        by_quote[item["quote_id"]].append(item)
    for quote in quotes:
        quote["items"] = by_quote[quote["id"]]
    return quotes


def _mock_delete_quote(quote_id: str) -> bool:
    db = connection._mock_db
    if quote_id not in db["quotes"]:
        return False
    for item_id in [i for i, row in db["quote_items"].items() if row["quote_id"] == quote_id]:
        del db["quote_items"][item_id]
    del db["quotes"][quote_id]
    return True


def delete_quote(quote_id: str) -> bool:
    """Delete one quote and its items. Returns False if it does not exist."""
    log = get_logger()
    if _use_postgres():
        conn = connection.get_db_connection()
        try:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM quotes WHERE id = %s", (quote_id,))
                deleted = cur.rowcount > 0
            conn.commit()
        except Exception as e:
            conn.rollback()
            log.error(f"Failed to delete quote {quote_id}: {e}")
            raise StorageError(f"Failed to delete quote: {e}") from e
        finally:
            conn.close()
    else:
        deleted = _mock_delete_quote(quote_id)

    if deleted:
        log.info(f"Deleted quote {quote_id}")
    return deleted
