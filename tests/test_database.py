"""Tests for gatekeeper.core.database: transaction deadlines, rollback and storage failures."""

import time
import unittest
from unittest.mock import patch

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from gatekeeper.core.database import check_db_connected, make_engine, transaction
from gatekeeper.core.errors import OperationTimeoutError, StorageUnavailableError
from gatekeeper.core.security import hash_password, verify_password
from gatekeeper.models import Base, User
from gatekeeper.services import credential_store, session_store


def _memory_session() -> Session:
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


def _unreachable_session() -> Session:
    engine = make_engine("sqlite:////nonexistent-gatekeeper-dir/sub/gatekeeper.db")
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


def _slow(func, delay: float = 0.2):
    def wrapper(*args, **kwargs):
        time.sleep(delay)
        return func(*args, **kwargs)

    return wrapper


class TestTransaction(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _memory_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_commits_on_success(self) -> None:
        with transaction(self.db):
            self.db.add(User(username="alice", password="x"))
        self.assertEqual(credential_store.list_usernames(self.db), ["alice"])

    def test_rolls_back_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with transaction(self.db):
                self.db.add(User(username="alice", password="x"))
                self.db.flush()
                raise RuntimeError("boom")
        self.assertEqual(credential_store.list_usernames(self.db), [])

    def test_rolls_back_on_cancellation(self) -> None:
        with self.assertRaises(KeyboardInterrupt):
            with transaction(self.db):
                self.db.add(User(username="alice", password="x"))
                self.db.flush()
                raise KeyboardInterrupt
        self.assertEqual(credential_store.list_usernames(self.db), [])

    def test_expired_deadline_persists_nothing(self) -> None:
        with self.assertRaises(OperationTimeoutError):
            credential_store.create_user(self.db, "alice", "p1", timeout=0)
        self.assertEqual(credential_store.list_usernames(self.db), [])

    def test_overrun_deadline_rolls_back(self) -> None:
        with patch("gatekeeper.core.database.monotonic", side_effect=[0.0, 0.0, 0.0, 100.0]):
            with self.assertRaises(OperationTimeoutError):
                credential_store.create_user(self.db, "alice", "p1", timeout=1.0)
        self.assertEqual(credential_store.list_usernames(self.db), [])

    def test_timeout_is_a_storage_failure(self) -> None:
        self.assertTrue(issubclass(OperationTimeoutError, StorageUnavailableError))

    def test_deadline_met_commits(self) -> None:
        user_id = credential_store.create_user(self.db, "alice", "p1", timeout=30.0)
        token = session_store.issue_session(self.db, user_id, timeout=30.0)
        self.assertEqual(session_store.resolve_session(self.db, token, timeout=30.0), user_id)


class TestDeadlineCoversHashing(unittest.TestCase):
    """bcrypt time counts against the caller's deadline."""

    def setUp(self) -> None:
        self.db = _memory_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_slow_hash_times_out_create(self) -> None:
        with patch(
            "gatekeeper.services.credential_store.hash_password", _slow(hash_password)
        ):
            with self.assertRaises(OperationTimeoutError):
                credential_store.create_user(self.db, "alice", "p1", timeout=0.05)
        self.assertEqual(credential_store.list_usernames(self.db), [])

    def test_slow_hash_times_out_credential_change(self) -> None:
        user_id = credential_store.create_user(self.db, "alice", "p1")
        token = session_store.issue_session(self.db, user_id)
        with patch(
            "gatekeeper.services.credential_store.hash_password", _slow(hash_password)
        ):
            with self.assertRaises(OperationTimeoutError):
                credential_store.update_credential(self.db, user_id, "p2", timeout=0.05)
        self.assertEqual(credential_store.verify_credential(self.db, "alice", "p1"), user_id)
        self.assertEqual(session_store.resolve_session(self.db, token), user_id)

    def test_slow_verification_times_out_login(self) -> None:
        credential_store.create_user(self.db, "alice", "p1")
        with patch(
            "gatekeeper.services.credential_store.verify_password", _slow(verify_password)
        ):
            with self.assertRaises(OperationTimeoutError):
                credential_store.verify_credential(self.db, "alice", "p1", timeout=0.05)
            with self.assertRaises(OperationTimeoutError):
                credential_store.verify_credential(self.db, "nobody", "p1", timeout=0.05)

    def test_fast_operations_meet_the_same_deadline(self) -> None:
        user_id = credential_store.create_user(self.db, "alice", "p1", timeout=5.0)
        self.assertEqual(
            credential_store.verify_credential(self.db, "alice", "p1", timeout=5.0), user_id
        )


class TestStorageUnavailable(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _unreachable_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_store_operations_raise_storage_unavailable(self) -> None:
        with self.assertRaises(StorageUnavailableError):
            credential_store.verify_credential(self.db, "alice", "p1")
        with self.assertRaises(StorageUnavailableError):
            credential_store.create_user(self.db, "alice", "p1")
        with self.assertRaises(StorageUnavailableError):
            session_store.resolve_session(self.db, session_store.generate_session_token())

    def test_health_check_reports_disconnected(self) -> None:
        self.assertFalse(check_db_connected(self.db))

    def test_health_check_reports_connected(self) -> None:
        db = _memory_session()
        try:
            self.assertTrue(check_db_connected(db))
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
