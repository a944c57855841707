"""
Migration V1 -> V2
- Merges duplicate (order_id, product_id) rows in order_items, summing
  quantity and subtotal into the oldest row and re-deriving its unit price
  as subtotal / quantity (rounded to cents)
- Replaces the plain order_id index with a unique (order_id, product_id) index

Usage:
  python -m migration.migration_v1_to_v2 --db path/to/orders.db
"""
import argparse
import os
import sqlite3
from contextlib import closing

OLD_INDEX = "ix_order_items_order_id"
NEW_INDEX = "ix_order_items_order_id_product_id"


def has_index(conn: sqlite3.Connection, table: str, index: str) -> bool:
    cur = conn.execute(f"PRAGMA index_list({table})")
    return any(row[1] == index for row in cur.fetchall())


def merge_duplicate_lines(conn: sqlite3.Connection) -> int:
    dupes = conn.execute(
        "SELECT order_id, product_id, MIN(id), SUM(quantity), SUM(subtotal) "
        "FROM order_items GROUP BY order_id, product_id HAVING COUNT(*) > 1"
    ).fetchall()
    for order_id, product_id, keep_id, quantity, subtotal in dupes:
        conn.execute(
            "UPDATE order_items SET quantity = ?, subtotal = ?, unit_price = ROUND(? * 1.0 / ?, 2) WHERE id = ?",
            (quantity, subtotal, subtotal, quantity, keep_id),
        )
        conn.execute(
            "DELETE FROM order_items WHERE order_id = ? AND product_id = ? AND id != ?",
            (order_id, product_id, keep_id),
        )
    return len(dupes)


def migrate(db_path: str) -> int:
    if db_path == ":memory:":
        raise ValueError("Use a file-backed DB for migration script")

    if not os.path.exists(db_path):
        raise FileNotFoundError(db_path)

    with closing(sqlite3.connect(db_path)) as conn:
        conn.execute("PRAGMA foreign_keys=ON")

        # Ensure order_items table exists
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        if "order_items" not in tables:
            raise RuntimeError("order_items table missing; cannot migrate")

        if has_index(conn, "order_items", NEW_INDEX):
            return 0

        merged = merge_duplicate_lines(conn)
        if has_index(conn, "order_items", OLD_INDEX):
            conn.execute(f"DROP INDEX {OLD_INDEX}")
        conn.execute(f"CREATE UNIQUE INDEX {NEW_INDEX} ON order_items (order_id, product_id)")
        conn.commit()
        return merged


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", required=True, help="Path to SQLite database file")
    args = parser.parse_args()
    merged = migrate(args.db)
    print(f"merged {merged} duplicate order line group(s)")

if __name__ == "__main__":
    main()
