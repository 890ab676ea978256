"""
Example 01: Basic Query Execution

This example demonstrates running parameterized statements inside a unit of
work and mapping rows to dicts, scalars and dataclasses.
"""

from dataclasses import dataclass
from typing import Annotated, Optional
import tempfile
import sqlite3
from pathlib import Path

from row_graph import ConnectionConfig, Engine, Key


@dataclass
class User:
    id: Annotated[Optional[int], Key()] = None
    name: Optional[str] = None
    email: Optional[str] = None
    active: Optional[bool] = None


def main():
    # Create a temporary database
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.execute("""
        CREATE TABLE users (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            active INTEGER DEFAULT 1
        )
    """)
    conn.execute("INSERT INTO users (name, email) VALUES ('Alice', 'alice@example.com')")
    conn.execute("INSERT INTO users (name, email) VALUES ('Bob', 'bob@example.com')")
    conn.execute("INSERT INTO users (name, email, active) VALUES ('Charlie', 'charlie@example.com', 0)")
    conn.commit()
    conn.close()

    engine = Engine.from_config(ConnectionConfig(driver="sqlite", database=db_path))

    print("=== Basic Query Execution ===\n")

    with engine.session() as session:
        # fetch: rows as dicts
        row = session.create_query("SELECT * FROM users WHERE id = :id").set_parameter("id", 1).fetch()
        print(f"fetch result: {row}\n")

        # fetch_as: rows mapped to a dataclass
        users = session.create_query("SELECT * FROM users WHERE active = ?", True).fetch_as(User)
        print(f"fetch_as result ({len(users)} rows):")
        for user in users:
            print(f"  - {user.name} ({user.email})")
        print()

        # get_unique_result_as: a single scalar
        count = session.create_query("SELECT COUNT(*) FROM users").get_unique_result_as(int)
        print(f"get_unique_result_as result: {count} total users\n")

    # query: the same as above, as a work function
    names = engine.query(lambda s: s.create_query("SELECT name FROM users ORDER BY name").fetch_as(str))
    print(f"engine.query result: {names}\n")

    # Clean up
    engine.close()
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
