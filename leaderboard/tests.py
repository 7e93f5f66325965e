from unittest.mock import patch

from django.test import TestCase, Client, override_settings
from django.urls import reverse

from store.base import CredentialStoreError
from store.utils import get_credential_store, reset_credential_store


@override_settings(CREDENTIAL_STORE="memory")
class LeaderboardTestCase(TestCase):

    def setUp(self):
        reset_credential_store()
        self.store = get_credential_store()

        identity = self.store.sign_up(email="testuser@gmail.com", password="password", username="testuser")
        self.store.create_profile(identity.id, "testuser")
        self.store.update_total_score(identity.id, 3)

        for name, score in (("ada", 12), ("bob", 7), ("cy", 0)):
            self.store.create_profile(f"id-{name}", name)
            self.store.update_total_score(f"id-{name}", score)

        self.authenticated_client = Client()
        self.authenticated_client.post(reverse("login"), {"email": "testuser@gmail.com", "password": "password"})
        self.unauthenticated_client = Client()

    def tearDown(self):
        reset_credential_store()

    def test_unauthenticated_client_get_leaderboard(self):
        response = self.unauthenticated_client.get(reverse("leaderboard"))
        self.assertEqual(response.status_code, 302)

    def test_rows_ranked_by_total_score(self):
        response = self.authenticated_client.get(reverse("leaderboard"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "leaderboard/leaderboard.html")

        rows = response.context["rows"]
        self.assertEqual([row["profile"].username for row in rows], ["ada", "bob", "testuser", "cy"])
        self.assertEqual([row["rank"] for row in rows], [1, 2, 3, 4])
        self.assertContains(response, "Rank 1")
        self.assertContains(response, "Beginner")

    @override_settings(LEADERBOARD_SIZE=2)
    def test_leaderboard_size_limit(self):
        response = self.authenticated_client.get(reverse("leaderboard"))
        self.assertEqual(len(response.context["rows"]), 2)

    def test_store_error_shows_message(self):
        with patch.object(self.store, "top_profiles", side_effect=CredentialStoreError("connection reset")):
            with self.assertLogs("kidslearn", level="ERROR"):
                response = self.authenticated_client.get(reverse("leaderboard"))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Error: connection reset")
        self.assertEqual(response.context["rows"], [])

    def test_empty_leaderboard(self):
        self.store.profiles.clear()

        response = self.authenticated_client.get(reverse("leaderboard"))

        self.assertContains(response, "No scores yet. Be the first!")

    def test_leaderboard_rejects_post(self):
        response = self.authenticated_client.post(reverse("leaderboard"))
        self.assertEqual(response.status_code, 405)
