"""
Example 03: Lazy Loading

This example demonstrates fields and accessor methods that run their own
query the first time they are read, using the unit of work that loaded the
entity.
"""

from dataclasses import dataclass, field
from typing import Annotated, Optional
import tempfile
import sqlite3
from pathlib import Path

from row_graph import (
    ConnectionConfig,
    Engine,
    Key,
    LoadQuery,
    SessionClosedError,
    is_loaded,
    load_query,
)


@dataclass
class Order:
    order_id: Annotated[Optional[int], Key()] = None
    total: Optional[float] = None


@dataclass
class Customer:
    customer_id: Annotated[Optional[int], Key()] = None
    name: Optional[str] = None
    orders: Annotated[
        Optional[list[Order]],
        LoadQuery("SELECT * FROM orders WHERE customer_id = :customer_id ORDER BY order_id"),
    ] = field(default=None, repr=False, compare=False)
    orders_by_id: Annotated[
        Optional[dict[int, Order]],
        LoadQuery("SELECT * FROM orders WHERE customer_id = :customer_id", map_key="order_id"),
    ] = field(default=None, repr=False, compare=False)


class CustomerSummary:
    customer_id: Annotated[Optional[int], Key()] = None
    name: Optional[str] = None
    order_count: Optional[int] = None

    @load_query("SELECT COUNT(*) FROM orders WHERE customer_id = :customer_id")
    def get_order_count(self) -> int:
        return self.order_count


def main():
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE customers (customer_id INTEGER PRIMARY KEY, name TEXT);
        CREATE TABLE orders (order_id INTEGER PRIMARY KEY, customer_id INTEGER, total REAL);
        INSERT INTO customers VALUES (1, 'Alice');
        INSERT INTO orders VALUES (10, 1, 9.5), (11, 1, 20.0);
    """)
    conn.commit()
    conn.close()

    engine = Engine.from_config(ConnectionConfig(driver="sqlite", database=db_path))

    print("=== Lazy Loading ===\n")

    with engine.session() as session:
        customer = session.create_query(
            "SELECT * FROM customers WHERE customer_id = ?", 1
        ).get_unique_result_as(Customer)
        print(f"Loaded {customer.name}; orders loaded: {is_loaded(customer, 'orders')}")

        # First access runs the load query
        print(f"Orders: {[o.total for o in customer.orders]}")
        print(f"Orders loaded: {is_loaded(customer, 'orders')}")
        print(f"Orders by id: {sorted(customer.orders_by_id)}\n")

        summary = session.create_query(
            "SELECT * FROM customers WHERE customer_id = ?", 1
        ).get_unique_result_as(CustomerSummary)
        print(f"{summary.name} has {summary.get_order_count()} orders\n")

    # Values not read before the unit of work ended cannot be loaded
    detached = engine.query(
        lambda s: s.create_query("SELECT * FROM customers").get_unique_result_as(Customer)
    )
    try:
        detached.orders
    except SessionClosedError as e:
        print(f"After the unit of work: {e}\n")

    engine.close()
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
