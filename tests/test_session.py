import unittest

from application.session import SessionManager
from domain.models import Currency, Stats

from fakes import InMemoryProfileStore, InMemorySessionIdentityStore


class RegistrationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryProfileStore()
        self.identity = InMemorySessionIdentityStore()
        self.session = SessionManager(self.store, self.identity)

    def test_register_creates_default_profile_and_stats(self):
        user = self.session.register("alice", "secret")

        self.assertIsNotNone(user)
        self.assertIs(self.session.user, user)
        profile = user.profile
        self.assertEqual(profile.balance, 1000)
        self.assertEqual(profile.level, 1)
        self.assertEqual(profile.experience, 0)
        self.assertIsNone(profile.last_daily_bonus_date)
        self.assertEqual(profile.currency, Currency.USD)
        self.assertFalse(profile.is_admin)
        self.assertEqual(self.store.stats[profile.id], Stats())
        self.assertEqual(self.identity.profile_id, profile.id)

    def test_duplicate_username_is_rejected(self):
        first = self.session.register("alice", "secret")
        self.store.profiles[first.id].balance = 420
        self.store.stats[first.id].total_bets = 3

        self.assertIsNone(self.session.register("alice", "other"))

        self.assertEqual(len(self.store.profiles), 1)
        self.assertEqual(self.store.profiles[first.id].balance, 420)
        self.assertEqual(self.store.stats[first.id].total_bets, 3)

    def test_usernames_are_case_sensitive_locally(self):
        self.assertIsNotNone(self.session.register("alice", "x"))
        self.assertIsNotNone(self.session.register("Alice", "x"))

    def test_blank_username_is_rejected(self):
        self.assertIsNone(self.session.register("   ", "secret"))
        self.assertEqual(self.store.profiles, {})

    def test_stats_failure_does_not_block_registration(self):
        self.store.fail_stats = True
        with self.assertLogs("application.session", level="ERROR"):
            user = self.session.register("bob", "secret")

        self.assertIsNotNone(user)
        self.assertIn(user.id, self.store.profiles)
        self.assertEqual(user.stats, Stats())


class RemoteRegistrationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryProfileStore(remote_ids=True)
        self.session = SessionManager(self.store, InMemorySessionIdentityStore())

    def test_short_password_is_rejected(self):
        self.assertIsNone(self.session.register("alice", ""))
        self.assertIsNone(self.session.register("alice", "12345"))
        self.assertEqual(self.store.profiles, {})
        self.assertIsNone(self.session.user)

    def test_username_must_form_an_email(self):
        self.assertIsNone(self.session.register("al ice", "secret"))
        self.assertIsNone(self.session.register("alice@example.com", "secret"))
        self.assertEqual(self.store.profiles, {})

    def test_six_character_password_is_enough(self):
        self.assertIsNotNone(self.session.register("alice", "123456"))

    def test_local_store_has_no_password_rules(self):
        session = SessionManager(InMemoryProfileStore(), InMemorySessionIdentityStore())
        self.assertIsNotNone(session.register("al ice", ""))


class LoginTests(unittest.TestCase):
    def test_local_login_is_username_lookup(self):
        store = InMemoryProfileStore()
        SessionManager(store, InMemorySessionIdentityStore()).register("alice", "secret")

        identity = InMemorySessionIdentityStore()
        session = SessionManager(store, identity)
        self.assertTrue(session.login("alice", "anything"))
        self.assertEqual(session.user.username, "alice")
        self.assertEqual(identity.profile_id, session.user.id)

    def test_login_strips_username_like_register(self):
        store = InMemoryProfileStore()
        SessionManager(store, InMemorySessionIdentityStore()).register("  bob ", "secret")

        session = SessionManager(store, InMemorySessionIdentityStore())
        self.assertTrue(session.login("  bob ", "secret"))
        self.assertEqual(session.user.username, "bob")
        self.assertFalse(session.login("   ", "secret"))

    def test_unknown_user_login_returns_false(self):
        session = SessionManager(InMemoryProfileStore(), InMemorySessionIdentityStore())
        self.assertFalse(session.login("ghost", "secret"))
        self.assertIsNone(session.user)

    def test_remote_login_checks_password(self):
        store = InMemoryProfileStore(remote_ids=True)
        SessionManager(store, InMemorySessionIdentityStore()).register("alice", "secret")
        store.sign_out()

        session = SessionManager(store, InMemorySessionIdentityStore())
        self.assertFalse(session.login("alice", "wrong"))
        self.assertTrue(session.login("alice", "secret"))

    def test_store_error_during_login_returns_false(self):
        store = InMemoryProfileStore()

        def broken(username, password):
            raise ConnectionError("down")

        store.authenticate = broken
        session = SessionManager(store, InMemorySessionIdentityStore())
        with self.assertLogs("application.session", level="ERROR"):
            self.assertFalse(session.login("alice", "secret"))

    def test_logout_clears_projection_and_reference(self):
        store = InMemoryProfileStore(remote_ids=True)
        identity = InMemorySessionIdentityStore()
        session = SessionManager(store, identity)
        session.register("alice", "secret")

        session.logout()

        self.assertIsNone(session.user)
        self.assertIsNone(identity.profile_id)
        self.assertIsNone(store.current_session())


class ResolveTests(unittest.TestCase):
    def test_resolve_from_stored_reference(self):
        store = InMemoryProfileStore()
        user = SessionManager(store, InMemorySessionIdentityStore()).register("alice", "s")
        store.profiles[user.id].balance = 77

        session = SessionManager(store, InMemorySessionIdentityStore(user.id))
        resolved = session.resolve()

        self.assertEqual(resolved.id, user.id)
        self.assertEqual(resolved.balance, 77)

    def test_resolve_without_reference_is_logged_out(self):
        session = SessionManager(InMemoryProfileStore(), InMemorySessionIdentityStore())
        self.assertIsNone(session.resolve())
        self.assertIsNone(session.user)

    def test_resolve_prefers_live_remote_session(self):
        store = InMemoryProfileStore(remote_ids=True)
        user = SessionManager(store, InMemorySessionIdentityStore()).register("alice", "secret")

        identity = InMemorySessionIdentityStore()
        session = SessionManager(store, identity)
        self.assertEqual(session.resolve().id, user.id)
        self.assertEqual(identity.profile_id, user.id)

    def test_local_reference_is_discarded_by_remote_store(self):
        local_store = InMemoryProfileStore()
        local_user = SessionManager(local_store, InMemorySessionIdentityStore()).register("alice", "s")

        remote_store = InMemoryProfileStore(remote_ids=True)
        identity = InMemorySessionIdentityStore(local_user.id)
        session = SessionManager(remote_store, identity)

        with self.assertLogs("application.session", level="WARNING"):
            self.assertIsNone(session.resolve())
        self.assertIsNone(session.user)
        self.assertIsNone(identity.profile_id)

    def test_reference_to_missing_profile_is_discarded(self):
        identity = InMemorySessionIdentityStore("deadbeefdeadbeef")
        session = SessionManager(InMemoryProfileStore(), identity)

        with self.assertLogs("application.session", level="WARNING"):
            self.assertIsNone(session.resolve())
        self.assertIsNone(identity.profile_id)

    def test_missing_stats_row_loads_zeroed_stats(self):
        store = InMemoryProfileStore()
        user = SessionManager(store, InMemorySessionIdentityStore()).register("alice", "s")
        del store.stats[user.id]

        session = SessionManager(store, InMemorySessionIdentityStore(user.id))
        with self.assertLogs("application.session", level="WARNING"):
            resolved = session.resolve()
        self.assertEqual(resolved.stats, Stats())

    def test_store_failure_during_resolve_is_logged_out(self):
        store = InMemoryProfileStore()

        def broken(profile_id):
            raise ConnectionError("down")

        store.get_profile = broken
        session = SessionManager(store, InMemorySessionIdentityStore("abc"))
        with self.assertLogs("application.session", level="ERROR"):
            self.assertIsNone(session.resolve())


class RefreshTests(unittest.TestCase):
    def test_refresh_reloads_persisted_state(self):
        store = InMemoryProfileStore()
        session = SessionManager(store, InMemorySessionIdentityStore())
        user = session.register("alice", "s")
        session.user.profile.balance = 5
        store.profiles[user.id].balance = 640

        self.assertEqual(session.refresh().balance, 640)

    def test_refresh_logs_out_when_profile_is_gone(self):
        store = InMemoryProfileStore()
        session = SessionManager(store, InMemorySessionIdentityStore())
        user = session.register("alice", "s")
        del store.profiles[user.id]

        with self.assertLogs("application.session", level="WARNING"):
            self.assertIsNone(session.refresh())
        self.assertIsNone(session.user)


if __name__ == "__main__":
    unittest.main()
