"""Tests for gatekeeper.services.session_store: issuing, resolving, revoking and cascades."""

import unittest

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from gatekeeper.core.database import make_engine
from gatekeeper.core.errors import InvalidSessionError, NotFoundError
from gatekeeper.models import Base, User, UserSession
from gatekeeper.services import credential_store, session_store
from gatekeeper.services.session_store import (
    SESSION_TOKEN_BYTES,
    decode_session_token,
    encode_session_token,
    generate_session_token,
)


def _memory_session() -> Session:
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


class TestTokenFormat(unittest.TestCase):
    def test_generated_tokens_have_fixed_length(self) -> None:
        self.assertEqual(len(generate_session_token()), SESSION_TOKEN_BYTES)
        self.assertGreaterEqual(SESSION_TOKEN_BYTES * 8, 128)

    def test_generated_tokens_are_distinct(self) -> None:
        tokens = {generate_session_token() for _ in range(10000)}
        self.assertEqual(len(tokens), 10000)

    def test_wire_encoding(self) -> None:
        token = generate_session_token()
        encoded = encode_session_token(token)
        self.assertEqual(len(encoded), SESSION_TOKEN_BYTES * 2)
        self.assertEqual(decode_session_token(encoded), token)

    def test_decode_rejects_malformed_values(self) -> None:
        for value in ("", "zz" * SESSION_TOKEN_BYTES, "ab" * (SESSION_TOKEN_BYTES - 1), "abc"):
            with self.assertRaises(InvalidSessionError):
                decode_session_token(value)


class TestIssueAndResolve(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _memory_session()
        self.alice = credential_store.create_user(self.db, "alice", "p1")

    def tearDown(self) -> None:
        self.db.close()

    def test_issue_then_resolve(self) -> None:
        token = session_store.issue_session(self.db, self.alice)
        self.assertEqual(session_store.resolve_session(self.db, token), self.alice)

    def test_issue_for_missing_user(self) -> None:
        with self.assertRaises(NotFoundError):
            session_store.issue_session(self.db, self.alice + 100)
        count = self.db.execute(select(func.count()).select_from(UserSession)).scalar_one()
        self.assertEqual(count, 0)

    def test_many_sessions_are_distinct(self) -> None:
        tokens = {session_store.issue_session(self.db, self.alice) for _ in range(200)}
        self.assertEqual(len(tokens), 200)
        for token in list(tokens)[:10]:
            self.assertEqual(session_store.resolve_session(self.db, token), self.alice)

    def test_resolve_unknown_token(self) -> None:
        with self.assertRaises(InvalidSessionError):
            session_store.resolve_session(self.db, generate_session_token())

    def test_resolve_wrong_length_token(self) -> None:
        with self.assertRaises(InvalidSessionError):
            session_store.resolve_session(self.db, b"short")

    def test_unassociated_session_resolves_to_none(self) -> None:
        token = generate_session_token()
        self.db.add(UserSession(session_token=token, user_id=None))
        self.db.commit()
        self.assertIsNone(session_store.resolve_session(self.db, token))


class TestRevoke(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _memory_session()
        self.alice = credential_store.create_user(self.db, "alice", "p1")
        self.bob = credential_store.create_user(self.db, "bob", "p1")

    def tearDown(self) -> None:
        self.db.close()

    def test_revoke_is_idempotent(self) -> None:
        token = session_store.issue_session(self.db, self.alice)
        session_store.revoke_session(self.db, token)
        session_store.revoke_session(self.db, token)
        with self.assertRaises(InvalidSessionError):
            session_store.resolve_session(self.db, token)

    def test_revoke_leaves_other_sessions(self) -> None:
        first = session_store.issue_session(self.db, self.alice)
        second = session_store.issue_session(self.db, self.alice)
        session_store.revoke_session(self.db, first)
        self.assertEqual(session_store.resolve_session(self.db, second), self.alice)

    def test_revoke_all_for_user(self) -> None:
        alice_tokens = [session_store.issue_session(self.db, self.alice) for _ in range(3)]
        bob_token = session_store.issue_session(self.db, self.bob)
        self.assertEqual(session_store.revoke_all_for_user(self.db, self.alice), 3)
        for token in alice_tokens:
            with self.assertRaises(InvalidSessionError):
                session_store.resolve_session(self.db, token)
        self.assertEqual(session_store.resolve_session(self.db, bob_token), self.bob)
        self.assertEqual(session_store.revoke_all_for_user(self.db, self.alice), 0)


class TestCascade(unittest.TestCase):
    """Sessions never outlive their user."""

    def setUp(self) -> None:
        self.db = _memory_session()
        self.alice = credential_store.create_user(self.db, "alice", "p1")
        self.bob = credential_store.create_user(self.db, "bob", "p1")

    def tearDown(self) -> None:
        self.db.close()

    def test_delete_user_invalidates_all_sessions(self) -> None:
        tokens = [session_store.issue_session(self.db, self.alice) for _ in range(3)]
        bob_token = session_store.issue_session(self.db, self.bob)
        credential_store.delete_user(self.db, self.alice)
        for token in tokens:
            with self.assertRaises(InvalidSessionError):
                session_store.resolve_session(self.db, token)
        self.assertEqual(session_store.resolve_session(self.db, bob_token), self.bob)

    def test_foreign_key_cascade_alone_removes_sessions(self) -> None:
        token = session_store.issue_session(self.db, self.alice)
        self.db.execute(delete(User).where(User.id == self.alice))
        self.db.commit()
        with self.assertRaises(InvalidSessionError):
            session_store.resolve_session(self.db, token)

    def test_revoked_token_stays_revoked_after_new_issue(self) -> None:
        token = session_store.issue_session(self.db, self.alice)
        session_store.revoke_session(self.db, token)
        new_token = session_store.issue_session(self.db, self.alice)
        self.assertNotEqual(new_token, token)
        with self.assertRaises(InvalidSessionError):
            session_store.resolve_session(self.db, token)


if __name__ == "__main__":
    unittest.main()
