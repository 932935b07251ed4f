"""
Create a user (e.g. first admin). Run from project root:
  python -m gatekeeper.scripts.create_user USERNAME PASSWORD [permission_level]
Example:
  python -m gatekeeper.scripts.create_user admin your-secure-password 1
"""
import argparse
import logging
import sys

from gatekeeper.core.database import SessionLocal
from gatekeeper.core.errors import DuplicateUsernameError, InvalidInputError, StorageUnavailableError
from gatekeeper.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from gatekeeper.services.credential_store import create_user

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Gatekeeper user without going through signup.")
    parser.add_argument("username", help="Username (1-19 chars: a-z, 0-9, '-')")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument(
        "permission_level",
        nargs="?",
        type=int,
        default=0,
        help="Permission level (0 = user, 1 = admin)",
    )
    args = parser.parse_args(argv)

    if len(args.password) < PASSWORD_MIN_LEN or len(args.password) > PASSWORD_MAX_LEN:
        print(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
            file=sys.stderr,
        )
        return 1

    db = SessionLocal()
    try:
        user_id = create_user(
            db, args.username.strip(), args.password, permission_level=args.permission_level
        )
    except InvalidInputError as e:
        print(e.message, file=sys.stderr)
        return 1
    except DuplicateUsernameError:
        print(f"User '{args.username.strip()}' already exists.", file=sys.stderr)
        return 1
    except StorageUnavailableError as e:
        logger.error("Could not create user: %s", e.message)
        return 2
    finally:
        db.close()
    print(f"Created user '{args.username.strip()}' (id={user_id}) with permission level {args.permission_level}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
