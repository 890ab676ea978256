"""
Example 04: Units of Work

This example demonstrates session scoping: everything inside one unit of
work shares a connection and commits together, and any failure rolls all of
it back. Nested units of work join the outer one.
"""

from dataclasses import dataclass
from typing import Annotated, Optional
import tempfile
import sqlite3
from pathlib import Path

from row_graph import ConnectionConfig, Engine, Key, UnitOfWorkError


@dataclass
class Account:
    id: Annotated[Optional[int], Key()] = None
    name: Optional[str] = None
    balance: Optional[float] = None


def transfer(engine: Engine, source: int, target: int, amount: float) -> None:
    def work(session):
        session.create_query(
            "UPDATE accounts SET balance = balance - :amount WHERE id = :id"
        ).set_parameter("amount", amount).set_parameter("id", source).execute_update()
        session.create_query(
            "UPDATE accounts SET balance = balance + :amount WHERE id = :id"
        ).set_parameter("amount", amount).set_parameter("id", target).execute_update()
        balance = session.create_query(
            "SELECT balance FROM accounts WHERE id = ?", source
        ).get_unique_result_as(float)
        if balance < 0:
            raise ValueError(f"insufficient funds in account {source}")

    engine.open(work)


def main():
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE accounts (id INTEGER PRIMARY KEY, name TEXT, balance REAL)")
    conn.commit()
    conn.close()

    engine = Engine.from_config(ConnectionConfig(driver="sqlite", database=db_path))

    print("=== Units of Work ===\n")

    # Batch insert: one batch per bound entity
    with engine.session() as session:
        keys = (
            session.create_query("INSERT INTO accounts (name, balance) VALUES (:name, :balance)")
            .bind(Account(name="Alice", balance=100.0))
            .bind(Account(name="Bob", balance=50.0))
            .execute_update()
        )
        print(f"1. Created accounts {keys}\n")

    print("2. Successful transfer:")
    transfer(engine, 1, 2, 30.0)
    print_balances(engine)

    print("3. Failed transfer (rolled back):")
    try:
        transfer(engine, 1, 2, 500.0)
    except UnitOfWorkError as e:
        print(f"   {e}")
    print_balances(engine)

    print("4. Nested units of work share one session:")
    try:
        with engine.session():
            transfer(engine, 2, 1, 10.0)
            transfer(engine, 2, 1, 500.0)
    except UnitOfWorkError as e:
        print(f"   {e}")
    print_balances(engine)

    engine.close()
    Path(db_path).unlink()


def print_balances(engine: Engine) -> None:
    accounts = engine.query(lambda s: s.create_query("SELECT * FROM accounts ORDER BY id").fetch_as(Account))
    for account in accounts:
        print(f"   {account.name}: {account.balance}")
    print()


if __name__ == "__main__":
    main()
