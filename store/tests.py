from io import StringIO
from types import SimpleNamespace
from unittest.mock import ANY, MagicMock, patch

import requests
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings

from store.base import AuthIdentity, AuthenticationError, CredentialStoreError, Profile, ProfileError
from store.memory import InMemoryCredentialStore
from store.seed import QUESTIONS
from store.supabase_store import SupabaseCredentialStore
from store.utils import get_credential_store, get_supabase_client, is_supabase_online, reset_credential_store


def auth_response(session=True, username="kid"):
    user = SimpleNamespace(id="user-1", email="kid@example.com", user_metadata={"username": username})
    return SimpleNamespace(user=user, session=SimpleNamespace(access_token="jwt") if session else None)


class SupabaseClientTestCase(SimpleTestCase):

    def setUp(self):
        get_supabase_client.cache_clear()

    def tearDown(self):
        get_supabase_client.cache_clear()

    @patch("store.utils.settings")
    @patch("store.utils.create_client")
    def test_data_client_uses_project_settings(self, mock_create_client, mock_settings):
        mock_settings.SUPABASE_URL = "https://example.supabase.co"
        mock_settings.SUPABASE_KEY = "service-key"
        mock_settings.SUPABASE_TIMEOUT = 5

        mock_client_instance = MagicMock()
        mock_create_client.return_value = mock_client_instance

        client = get_supabase_client()

        mock_create_client.assert_called_once_with("https://example.supabase.co", "service-key", options=ANY)
        self.assertEqual(client, mock_client_instance)

        # cached for the process
        self.assertIs(get_supabase_client(), mock_client_instance)
        mock_create_client.assert_called_once()

    @patch("store.utils.settings")
    @patch("store.utils.create_client", side_effect=Exception("Invalid URL"))
    def test_data_client_returns_none_on_exception(self, mock_create_client, mock_settings):
        mock_settings.SUPABASE_URL = ""
        mock_settings.SUPABASE_KEY = ""
        mock_settings.SUPABASE_TIMEOUT = 5

        with self.assertLogs("kidslearn", level="ERROR"):
            client = get_supabase_client()
        self.assertIsNone(client)

    @patch("store.utils.requests.get")
    def test_online_when_health_check_passes(self, mock_get):
        mock_get.return_value = SimpleNamespace(status_code=200)
        self.assertTrue(is_supabase_online())
        self.assertIn("/auth/v1/health", mock_get.call_args[0][0])

    @patch("store.utils.requests.get")
    def test_offline_when_health_check_fails(self, mock_get):
        mock_get.return_value = SimpleNamespace(status_code=503)
        self.assertFalse(is_supabase_online())

    @patch("store.utils.requests.get", side_effect=requests.ConnectionError)
    def test_offline_when_unreachable(self, mock_get):
        self.assertFalse(is_supabase_online())


@patch("store.supabase_store.new_supabase_auth_client")
@patch("store.supabase_store.get_supabase_client")
class SupabaseCredentialStoreTestCase(SimpleTestCase):

    def setUp(self):
        self.store = SupabaseCredentialStore()
        self.supabase = MagicMock()

    def table(self):
        return self.supabase.table.return_value

    def test_fetch_quizzes(self, data_client, auth_client):
        data_client.return_value = self.supabase
        query = self.table().select.return_value.order.return_value.order.return_value
        query.execute.return_value = SimpleNamespace(data=QUESTIONS)

        rows = self.store.fetch_quizzes()

        self.supabase.table.assert_called_with("quizzes")
        self.table().select.return_value.order.assert_called_once_with("difficulty")
        self.assertEqual(rows, QUESTIONS)

    def test_fetch_quizzes_error(self, data_client, auth_client):
        data_client.return_value = self.supabase
        self.table().select.side_effect = Exception("relation \"quizzes\" does not exist")

        with self.assertLogs("kidslearn", level="ERROR"):
            with self.assertRaises(CredentialStoreError):
                self.store.fetch_quizzes()

    def test_no_client(self, data_client, auth_client):
        data_client.return_value = None

        with self.assertRaises(CredentialStoreError):
            self.store.fetch_quizzes()
        with self.assertRaises(ProfileError):
            self.store.get_profile("user-1")

    def test_insert_result(self, data_client, auth_client):
        data_client.return_value = self.supabase

        self.store.insert_result("user-1", 5, 4)

        self.supabase.table.assert_called_with("user_progress")
        self.table().insert.assert_called_once_with({"user_id": "user-1", "quiz_id": 5, "score": 4})
        self.table().insert.return_value.execute.assert_called_once()

    def test_get_profile(self, data_client, auth_client):
        data_client.return_value = self.supabase
        query = self.table().select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = SimpleNamespace(data=[
            {"id": "user-1", "username": "kid", "current_level": "Explorer", "total_score": 9}
        ])

        profile = self.store.get_profile("user-1")

        self.table().select.return_value.eq.assert_called_once_with("id", "user-1")
        self.assertEqual(profile, Profile(id="user-1", username="kid", current_level="Explorer", total_score=9))

    def test_get_profile_missing(self, data_client, auth_client):
        data_client.return_value = self.supabase
        query = self.table().select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = SimpleNamespace(data=[])

        self.assertIsNone(self.store.get_profile("user-1"))

    def test_create_profile(self, data_client, auth_client):
        data_client.return_value = self.supabase

        profile = self.store.create_profile("user-1", "kid")

        self.table().insert.assert_called_once_with(
            {"id": "user-1", "username": "kid", "current_level": "Beginner", "total_score": 0})
        self.assertEqual(profile.total_score, 0)

    def test_create_profile_error(self, data_client, auth_client):
        data_client.return_value = self.supabase
        self.table().insert.return_value.execute.side_effect = Exception("duplicate key")

        with self.assertLogs("kidslearn", level="ERROR"):
            with self.assertRaises(ProfileError):
                self.store.create_profile("user-1", "kid")

    def test_update_total_score(self, data_client, auth_client):
        data_client.return_value = self.supabase

        self.store.update_total_score("user-1", 11)

        self.table().update.assert_called_once_with({"total_score": 11})
        self.table().update.return_value.eq.assert_called_once_with("id", "user-1")

    def test_top_profiles(self, data_client, auth_client):
        data_client.return_value = self.supabase
        query = self.table().select.return_value.order.return_value.limit.return_value
        query.execute.return_value = SimpleNamespace(data=[
            {"id": "a", "username": "ada", "current_level": "Master", "total_score": 20},
            {"id": "b", "username": "bob", "current_level": None, "total_score": None},
        ])

        profiles = self.store.top_profiles(10)

        self.table().select.return_value.order.assert_called_once_with("total_score", desc=True)
        self.table().select.return_value.order.return_value.limit.assert_called_once_with(10)
        self.assertEqual([p.username for p in profiles], ["ada", "bob"])
        self.assertEqual(profiles[1].current_level, "Beginner")
        self.assertEqual(profiles[1].total_score, 0)

    def test_sign_in(self, data_client, auth_client):
        auth_client.return_value = self.supabase
        self.supabase.auth.sign_in_with_password.return_value = auth_response()

        identity = self.store.sign_in("kid@example.com", "password")

        self.supabase.auth.sign_in_with_password.assert_called_once_with(
            {"email": "kid@example.com", "password": "password"})
        self.assertEqual(identity, AuthIdentity(id="user-1", email="kid@example.com", username="kid",
                                                has_session=True, access_token="jwt"))
        data_client.assert_not_called()

    def test_sign_in_bad_credentials(self, data_client, auth_client):
        auth_client.return_value = self.supabase
        self.supabase.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

        with self.assertLogs("kidslearn", level="ERROR"):
            with self.assertRaises(AuthenticationError):
                self.store.sign_in("kid@example.com", "wrong")

    @override_settings(EMAIL_CONFIRMATION_REDIRECT_URL="https://kidslearn.example.com/accounts/confirm/")
    def test_sign_up_waiting_for_confirmation(self, data_client, auth_client):
        auth_client.return_value = self.supabase
        self.supabase.auth.sign_up.return_value = auth_response(session=False)

        identity = self.store.sign_up("kid@example.com", "password", "kid")

        credentials = self.supabase.auth.sign_up.call_args[0][0]
        self.assertEqual(credentials["options"]["data"], {"username": "kid"})
        self.assertEqual(credentials["options"]["email_redirect_to"],
                         "https://kidslearn.example.com/accounts/confirm/")
        self.assertFalse(identity.has_session)
        self.assertEqual(identity.access_token, "")

    def test_verify_email(self, data_client, auth_client):
        auth_client.return_value = self.supabase
        self.supabase.auth.verify_otp.return_value = auth_response()

        identity = self.store.verify_email("hash123")

        self.supabase.auth.verify_otp.assert_called_once_with({"token_hash": "hash123", "type": "email"})
        self.assertEqual(identity.username, "kid")

    def test_sign_out(self, data_client, auth_client):
        data_client.return_value = self.supabase

        self.store.sign_out("jwt")
        self.store.sign_out("")

        self.supabase.auth.admin.sign_out.assert_called_once_with("jwt")


class InMemoryCredentialStoreTestCase(SimpleTestCase):

    def setUp(self):
        self.store = InMemoryCredentialStore()

    def test_seeded_with_question_bank(self):
        self.assertEqual(len(self.store.fetch_quizzes()), len(QUESTIONS))

    def test_fetch_returns_copies(self):
        self.store.fetch_quizzes()[0]["question"] = "changed"
        self.assertNotEqual(self.store.fetch_quizzes()[0]["question"], "changed")

    def test_upsert_quizzes(self):
        self.store.upsert_quizzes([
            {"id": 1, "question": "replaced", "options": ["a", "b"], "correct_answer": 0, "difficulty": "easy"},
            {"id": 99, "question": "new", "options": ["a", "b"], "correct_answer": 1, "difficulty": "hard"},
        ])

        rows = {row["id"]: row for row in self.store.fetch_quizzes()}
        self.assertEqual(rows[1]["question"], "replaced")
        self.assertIn(99, rows)
        self.assertEqual(len(rows), len(QUESTIONS) + 1)

    def test_pending_user_cannot_sign_in(self):
        self.store.auto_confirm = False
        self.store.sign_up("kid@example.com", "password", "kid")

        with self.assertRaises(AuthenticationError):
            self.store.sign_in("kid@example.com", "password")

        token_hash = next(iter(self.store.pending_confirmations))
        self.store.verify_email(token_hash)
        self.assertEqual(self.store.sign_in("kid@example.com", "password").username, "kid")

    def test_duplicate_profile(self):
        self.store.create_profile("user-1", "kid")
        with self.assertRaises(ProfileError):
            self.store.create_profile("user-1", "kid")

    def test_update_missing_profile(self):
        with self.assertRaises(ProfileError):
            self.store.update_total_score("ghost", 3)


class CredentialStoreSelectionTestCase(SimpleTestCase):

    def setUp(self):
        reset_credential_store()

    def tearDown(self):
        reset_credential_store()

    @override_settings(CREDENTIAL_STORE="memory")
    def test_memory_store_is_shared(self):
        store = get_credential_store()
        self.assertIsInstance(store, InMemoryCredentialStore)
        self.assertIs(get_credential_store(), store)

    @override_settings(CREDENTIAL_STORE="supabase")
    def test_supabase_store(self):
        self.assertIsInstance(get_credential_store(), SupabaseCredentialStore)

    @override_settings(CREDENTIAL_STORE="firebase")
    def test_unknown_store(self):
        with self.assertRaises(ValueError):
            get_credential_store()


@override_settings(CREDENTIAL_STORE="memory")
class SeedQuizzesCommandTestCase(SimpleTestCase):

    def setUp(self):
        reset_credential_store()

    def tearDown(self):
        reset_credential_store()

    def test_seed_quizzes(self):
        store = get_credential_store()
        store.quizzes = []
        out = StringIO()

        call_command("seed_quizzes", stdout=out)

        self.assertEqual(len(store.fetch_quizzes()), len(QUESTIONS))
        self.assertIn(f"Seeded {len(QUESTIONS)} questions", out.getvalue())

    def test_seed_quizzes_failure(self):
        store = get_credential_store()

        with patch.object(store, "upsert_quizzes", side_effect=CredentialStoreError("permission denied")):
            with self.assertRaises(CommandError):
                call_command("seed_quizzes", stdout=StringIO())
