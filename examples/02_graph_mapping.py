"""
Example 02: Graph Mapping

This example demonstrates assembling an entity graph from joined rows:
duplicated parent rows collapse to one instance per key, and related rows
fill single and multi relations.
"""

from dataclasses import dataclass, field
from typing import Annotated, Optional
import tempfile
import sqlite3
from pathlib import Path

from row_graph import Column, ConnectionConfig, Engine, Key, MultiRelation, SingleRelation


@dataclass
class Author:
    author_id: Annotated[Optional[int], Key()] = None
    author_name: Optional[str] = None


@dataclass
class Comment:
    comment_id: Annotated[Optional[int], Key()] = None
    body: Annotated[Optional[str], Column("comment_body")] = None


@dataclass
class Post:
    post_id: Annotated[Optional[int], Key()] = None
    title: Optional[str] = None
    author: Annotated[Optional[Author], SingleRelation()] = None
    comments: Annotated[list[Comment], MultiRelation()] = field(default_factory=list)


POSTS_WITH_COMMENTS = """
    SELECT p.post_id, p.title,
           a.author_id, a.author_name,
           c.comment_id, c.body AS comment_body
    FROM posts p
    JOIN authors a ON a.author_id = p.author_id
    LEFT JOIN comments c ON c.post_id = p.post_id
    ORDER BY p.post_id, c.comment_id
"""


def main():
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE authors (author_id INTEGER PRIMARY KEY, author_name TEXT);
        CREATE TABLE posts (post_id INTEGER PRIMARY KEY, author_id INTEGER, title TEXT);
        CREATE TABLE comments (comment_id INTEGER PRIMARY KEY, post_id INTEGER, body TEXT);
        INSERT INTO authors VALUES (1, 'Alice');
        INSERT INTO posts VALUES (1, 1, 'Hello'), (2, 1, 'Quiet post');
        INSERT INTO comments VALUES (1, 1, 'First!'), (2, 1, 'Nice'), (3, 1, 'Thanks');
    """)
    conn.commit()
    conn.close()

    engine = Engine.from_config(ConnectionConfig(driver="sqlite", database=db_path))

    print("=== Graph Mapping ===\n")

    posts = engine.query(lambda s: s.create_query(POSTS_WITH_COMMENTS).fetch_as(Post))
    for post in posts:
        print(f"{post.title} by {post.author.author_name}")
        for comment in post.comments:
            print(f"  - {comment.body}")
        if not post.comments:
            print("  (no comments)")
    print()

    # Both posts share one Author instance
    print(f"Shared author instance: {posts[0].author is posts[1].author}\n")

    engine.close()
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
