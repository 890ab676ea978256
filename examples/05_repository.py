"""
Example 05: Repository Pattern

This example demonstrates declaring data access as annotated repository
methods. The SQL lives on the decorator, parameters are matched by name and
the return annotation decides how results are shaped.
"""

from dataclasses import dataclass
from typing import Annotated, Optional
import tempfile
import sqlite3
from pathlib import Path

from row_graph import (
    ConnectionConfig,
    Engine,
    Key,
    Repository,
    ReturnInfo,
    sql_query,
    sql_update,
    transactional,
)


@dataclass
class User:
    """User entity"""
    id: Annotated[Optional[int], Key()] = None
    name: Optional[str] = None
    email: Optional[str] = None
    active: Optional[bool] = True


class UserRepository(Repository):
    """Repository for User entities"""

    @sql_query("SELECT * FROM users WHERE id = :id")
    def find_by_id(self, id: int) -> Optional[User]: ...

    @sql_query("SELECT * FROM users WHERE active = 1 ORDER BY id")
    def find_all_active(self) -> list[User]: ...

    @sql_query("SELECT * FROM users", map_key="email")
    def by_email(self) -> dict[str, User]: ...

    @sql_update(
        "INSERT INTO users (name, email, active) VALUES (:name, :email, :active)",
        returning=ReturnInfo.GENERATED_KEYS,
    )
    def create(self, user: User) -> int: ...

    @sql_update("UPDATE users SET name = :name, email = :email, active = :active WHERE id = :id")
    def update(self, user: User) -> int: ...

    @sql_update("DELETE FROM users WHERE id = :id")
    def delete(self, id: int) -> int: ...

    @transactional
    def save(self, user: User) -> User:
        """Save user (insert or update)"""
        if user.id is None:
            user.id = self.create(user)
        else:
            self.update(user)
        return user


def main():
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.execute("""
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            active INTEGER DEFAULT 1
        )
    """)
    conn.execute("INSERT INTO users (name, email) VALUES ('Alice', 'alice@example.com')")
    conn.execute("INSERT INTO users (name, email, active) VALUES ('Bob', 'bob@example.com', 0)")
    conn.commit()
    conn.close()

    engine = Engine.from_config(ConnectionConfig(driver="sqlite", database=db_path))
    user_repo = UserRepository(engine)

    print("=== Repository Pattern ===\n")

    print("1. Find user by ID:")
    user = user_repo.find_by_id(1)
    if user:
        print(f"   Found: {user.name} ({user.email})\n")

    print("2. Find all active users:")
    for u in user_repo.find_all_active():
        print(f"   - {u.name}")
    print()

    print("3. Save new user:")
    saved_user = user_repo.save(User(name="Charlie", email="charlie@example.com"))
    print(f"   Created user with ID: {saved_user.id}\n")

    print("4. Update user:")
    user = user_repo.find_by_id(1)
    if user:
        user.email = "alice.updated@example.com"
        user_repo.save(user)
        print(f"   Updated user #{user.id}\n")

    print("5. Delete user:")
    print(f"   Deleted {user_repo.delete(2)} row(s)\n")

    print("6. Users by email:")
    for email, u in sorted(user_repo.by_email().items()):
        print(f"   {email}: {u.name}")
    print()

    engine.close()
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
