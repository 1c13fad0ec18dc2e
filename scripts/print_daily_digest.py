#!/usr/bin/env python3
"""
Print a user's daily digest as JSON.

Uses the same builder as GET /api/v1/daily_digest, straight against the
configured database.

Usage:
    python -m scripts.print_daily_digest --user-id 1
    python -m scripts.print_daily_digest --user-id 1 --date 2024-03-15
"""
import argparse
import json
import logging
import sys
from datetime import date
from typing import Optional

from sqlalchemy.orm import sessionmaker

from api.models import User
from api.services.daily_digest import DailyDigestService, generated_at, today_in
from api.services.database import build_engine, get_session_factory
from config.settings import settings

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def load_daily_digest(user_id: int, target_date: date, database_url: Optional[str] = None) -> dict:
    """
    Build and return the digest for one user.

    Args:
        user_id: User to build the digest for
        target_date: Digest date
        database_url: Override for settings.database_url

    Raises:
        LookupError: If the user does not exist
    """
    engine = build_engine(database_url) if database_url else None
    factory = sessionmaker(bind=engine) if engine is not None else get_session_factory()

    try:
        with factory() as session:
            user = session.get(User, user_id)
            if user is None:
                raise LookupError(f"User {user_id} not found")

            digest = DailyDigestService(session, user, target_date).build()
            digest["generated_at"] = generated_at(settings.tz)
            logger.info(f"Built digest for user {user_id} on {target_date.isoformat()}")
            return digest
    finally:
        if engine is not None:
            engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Print a daily digest as JSON')
    parser.add_argument('--user-id', type=int, required=True, help='User id')
    parser.add_argument('--date', help='Digest date (YYYY-MM-DD), default today')
    parser.add_argument('--database-url', help='Override DIGEST_DATABASE_URL')
    args = parser.parse_args(argv)

    if args.date:
        try:
            target_date = date.fromisoformat(args.date)
        except ValueError:
            logger.error("Invalid date format")
            return 2
    else:
        target_date = today_in()

    try:
        digest = load_daily_digest(args.user_id, target_date, args.database_url)
    except LookupError as e:
        logger.error(str(e))
        return 1

    print(json.dumps(digest, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
