#!/usr/bin/env python3
"""
Blog API -- management command line.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py create-user alice
  python main.py create-user alice --password 's3cret1234'
  python main.py seed-articles alice --count 5
  python main.py purge-sessions

Environment variables:
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL  SQLAlchemy URL shared by every store (default: sqlite file beside the code).
  DEBUG         Development mode; auto-generates SECRET_KEY.
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from api.models import PASSWORD_MAX_LENGTH, PASSWORD_MIN_LENGTH, USERNAME_PATTERN
from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import hash_password
from blog.store import BlogStore


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_create_user(args: argparse.Namespace) -> int:
    if not USERNAME_PATTERN.fullmatch(args.username):
        print(f"  [!] '{args.username}' is not a valid username (3-32 chars: a-z 0-9 - _ .).")
        return 1
    password = args.password or getpass.getpass("Password: ")
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        print(f"  [!] Password must be {PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters.")
        return 1

    store = UserStore()
    try:
        user_id = store.create_user(User(username=args.username, hashed_password=hash_password(password)))
    except IntegrityError:
        print(f"  [!] User '{args.username}' already exists.")
        return 1
    finally:
        store.close()
    print(f"Created user '{args.username}' (id {user_id}).")
    return 0


def _cmd_seed_articles(args: argparse.Namespace) -> int:
    users = UserStore()
    try:
        author = users.get_by_username(args.username)
    finally:
        users.close()
    if author is None:
        print(f"  [!] No user named '{args.username}'. Create one first with create-user.")
        return 1

    store = BlogStore()
    try:
        for n in range(1, args.count + 1):
            article_id = store.create_article(author.id, f"Sample article {n}", f"Body of sample article {n}.")
            print(f"  article {article_id}")
    finally:
        store.close()
    print(f"Seeded {args.count} article(s) for '{author.username}'.")
    return 0


def _cmd_purge_sessions(args: argparse.Namespace) -> int:
    store = SessionStore()
    try:
        removed = store.purge_expired()
    finally:
        store.close()
    print(f"Removed {removed} expired session(s).")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="blog-api",
        description="Blog API server and maintenance commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_cmd_serve)

    create_user = sub.add_parser("create-user", help="Register a local account")
    create_user.add_argument("username")
    create_user.add_argument(
        "--password",
        help="Password to set. Prompted for when omitted, which keeps it out of shell history.",
    )
    create_user.set_defaults(func=_cmd_create_user)

    seed = sub.add_parser("seed-articles", help="Insert sample articles owned by an existing user")
    seed.add_argument("username")
    seed.add_argument("--count", type=int, default=2, help="Number of articles to insert (default: 2)")
    seed.set_defaults(func=_cmd_seed_articles)

    purge = sub.add_parser("purge-sessions", help="Delete idle-expired sessions")
    purge.set_defaults(func=_cmd_purge_sessions)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
