import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from psycopg2 import errors
from werkzeug.security import check_password_hash, generate_password_hash

from domain.models import BetRecord, Currency, Stats
from domain.repositories import UsernameTakenError
from infrastructure.db.profile_store_postgres import (
    PostgresProfileStore,
    synthetic_email,
)


FAST_HASH = "pbkdf2:sha256:1000"
PROFILE_ID = "6f1c2a9e-3b7d-4c55-9a0e-2f4b8d1e7c30"
PROFILE_ROW = (
    PROFILE_ID,
    "alice",
    1000.0,
    False,
    1,
    0,
    None,
    "USD",
    datetime(2024, 3, 1, tzinfo=timezone.utc),
)


def _mock_connection():
    cursor = MagicMock()
    cursor.__enter__.return_value = cursor
    conn = MagicMock()
    conn.__enter__.return_value = conn
    conn.cursor.return_value = cursor
    return conn, cursor


class PostgresTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.conn, self.cursor = _mock_connection()
        patcher = patch(
            "infrastructure.db.profile_store_postgres.psycopg2.connect",
            return_value=self.conn,
        )
        self.connect = patcher.start()
        self.addCleanup(patcher.stop)
        self.store = PostgresProfileStore({"dsn": "postgresql://db/casino", "password": "k"}, "example.test")
        self.cursor.reset_mock()

    def executed_sql(self):
        return [call.args[0] for call in self.cursor.execute.call_args_list]


class CredentialHelperTests(unittest.TestCase):
    def test_synthetic_email_is_cleaned(self):
        self.assertEqual(synthetic_email("  Alice\u200b ", "example.test"), "alice@example.test")

    def test_password_hash_round_trip(self):
        encoded = generate_password_hash("hunter2", method=FAST_HASH)
        self.assertTrue(check_password_hash(encoded, "hunter2"))
        self.assertFalse(check_password_hash(encoded, "hunter3"))

    def test_malformed_hash_never_verifies(self):
        self.assertFalse(check_password_hash("plain-text", "x"))
        self.assertFalse(check_password_hash("pbkdf2:sha256:1000$salt$00", "x"))


class PostgresProfileStoreTests(PostgresTestCase):
    def test_connects_with_configured_params(self):
        self.connect.assert_called_with(dsn="postgresql://db/casino", password="k")
        self.assertTrue(self.conn.commit.called)

    def test_only_uuids_are_accepted(self):
        self.assertTrue(self.store.accepts_profile_id(PROFILE_ID))
        self.assertFalse(self.store.accepts_profile_id("deadbeefdeadbeef"))
        self.assertFalse(self.store.accepts_profile_id(""))

    def test_get_profile_skips_query_for_foreign_ids(self):
        self.assertIsNone(self.store.get_profile("deadbeefdeadbeef"))
        self.cursor.execute.assert_not_called()

    def test_get_profile_maps_row(self):
        self.cursor.fetchone.return_value = PROFILE_ROW
        profile = self.store.get_profile(PROFILE_ID)
        self.assertEqual(profile.id, PROFILE_ID)
        self.assertEqual(profile.currency, Currency.USD)
        self.assertEqual(profile.balance, 1000.0)

    def test_authenticate_checks_hash_and_opens_session(self):
        self.cursor.fetchone.return_value = (generate_password_hash("secret", method=FAST_HASH), PROFILE_ID)

        self.assertIsNone(self.store.authenticate("alice", "wrong"))
        self.assertIsNone(self.store.current_session())

        self.assertEqual(self.store.authenticate("alice", "secret"), PROFILE_ID)
        self.assertEqual(self.store.current_session(), PROFILE_ID)
        self.assertEqual(self.cursor.execute.call_args.args[1], ("alice@example.test",))

        self.store.sign_out()
        self.assertIsNone(self.store.current_session())

    def test_authenticate_rejects_malformed_stored_hash(self):
        self.cursor.fetchone.return_value = ("plain-text", PROFILE_ID)
        self.assertIsNone(self.store.authenticate("alice", "plain-text"))
        self.assertIsNone(self.store.current_session())

    def test_authenticate_unknown_account(self):
        self.cursor.fetchone.return_value = None
        self.assertIsNone(self.store.authenticate("ghost", "secret"))

    def test_create_profile_signs_in(self):
        self.cursor.fetchone.return_value = PROFILE_ROW
        profile = self.store.create_profile("alice", "secret")

        self.assertEqual(profile.id, PROFILE_ID)
        self.assertEqual(self.store.current_session(), PROFILE_ID)
        email, password_hash, profile_id = self.cursor.execute.call_args.args[1]
        self.assertEqual(email, "alice@example.test")
        self.assertTrue(check_password_hash(password_hash, "secret"))

    def test_create_profile_duplicate_raises(self):
        self.cursor.execute.side_effect = errors.UniqueViolation()
        with self.assertRaises(UsernameTakenError):
            self.store.create_profile("alice", "secret")
        self.assertIsNone(self.store.current_session())

    def test_update_profile_converts_currency(self):
        self.store.update_profile(PROFILE_ID, balance=10.0, currency=Currency.BTC)
        sql, params = self.cursor.execute.call_args.args
        self.assertIn("balance = %s, currency = %s", sql)
        self.assertEqual(params, (10.0, "BTC", PROFILE_ID))

    def test_record_wager_only_inserts_bet(self):
        bet = BetRecord("dice", 50, 120, 2.4)
        self.store.record_wager(PROFILE_ID, bet, Stats(total_bets=99))

        statements = self.executed_sql()
        self.assertEqual(len(statements), 1)
        self.assertIn("INSERT INTO bets", statements[0])


if __name__ == "__main__":
    unittest.main()
