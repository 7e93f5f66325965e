from unittest.mock import patch

from django.contrib.messages import get_messages
from django.contrib.sessions.backends.db import SessionStore
from django.test import TestCase, Client, override_settings
from django.urls import reverse

from accounts.session import SessionContext
from store.base import AuthenticationError, ProfileError
from store.utils import get_credential_store, reset_credential_store


@override_settings(CREDENTIAL_STORE="memory")
class AccountsTestCase(TestCase):

    def setUp(self):
        reset_credential_store()
        self.store = get_credential_store()
        self.test_user = self.store.sign_up(email="testuser@gmail.com", password="password", username="testuser")
        self.store.create_profile(self.test_user.id, "testuser")

        # Every test needs a client.
        self.authenticated_client = Client()
        self.authenticated_client.post(reverse("login"), {"email": "testuser@gmail.com", "password": "password"})
        self.unauthenticated_client = Client()

    def tearDown(self):
        reset_credential_store()

    def test_login_email_password(self):
        response = self.unauthenticated_client.post(reverse("login"), {
            "email": "testuser@gmail.com",
            "password": "password"
        })

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("home"))

        # verify that the session flag is set
        self.assertEqual(self.unauthenticated_client.session["username"], "testuser")
        self.assertEqual(self.unauthenticated_client.session["user_id"], self.test_user.id)

    def test_login_is_case_insensitive_on_email(self):
        response = self.unauthenticated_client.post(reverse("login"), {
            "email": "TestUser@gmail.com",
            "password": "password"
        })
        self.assertEqual(response.status_code, 302)

    def test_login_wrong_password(self):
        with self.assertLogs("kidslearn", level="ERROR"):
            response = self.unauthenticated_client.post(reverse("login"), {
                "email": "testuser@gmail.com",
                "password": "passworddd"
            })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.template_name[0], "registration/login.html")
        self.assertContains(response, "Incorrect email or password.")
        self.assertNotIn("username", self.unauthenticated_client.session)

    def test_login_unknown_email(self):
        with self.assertLogs("kidslearn", level="ERROR"):
            response = self.unauthenticated_client.post(reverse("login"), {
                "email": "nobody@gmail.com",
                "password": "password"
            })
        self.assertContains(response, "Incorrect email or password.")

    def test_login_redirects_to_next(self):
        response = self.unauthenticated_client.post(f"{reverse('login')}?next=/leaderboard/", {
            "email": "testuser@gmail.com",
            "password": "password"
        })
        self.assertEqual(response.url, "/leaderboard/")

    def test_login_ignores_offsite_next(self):
        response = self.unauthenticated_client.post(f"{reverse('login')}?next=https://evil.example.com/", {
            "email": "testuser@gmail.com",
            "password": "password"
        })
        self.assertEqual(response.url, reverse("home"))

    def test_login_creates_missing_profile(self):
        identity = self.store.sign_up(email="noprofile@gmail.com", password="password", username="newkid")

        response = self.unauthenticated_client.post(reverse("login"), {
            "email": "noprofile@gmail.com",
            "password": "password"
        })

        self.assertEqual(response.status_code, 302)
        profile = self.store.get_profile(identity.id)
        self.assertEqual(profile.username, "newkid")
        self.assertEqual(profile.current_level, "Beginner")
        self.assertEqual(profile.total_score, 0)
        self.assertEqual(self.unauthenticated_client.session["username"], "newkid")

    def test_login_profile_fetch_error(self):
        with patch.object(self.store, "get_profile", side_effect=ProfileError("permission denied")):
            with self.assertLogs("kidslearn", level="ERROR"):
                response = self.unauthenticated_client.post(reverse("login"), {
                    "email": "testuser@gmail.com",
                    "password": "password"
                })

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Error fetching profile.")
        self.assertNotIn("username", self.unauthenticated_client.session)

    def test_login_profile_create_error(self):
        self.store.sign_up(email="noprofile@gmail.com", password="password", username="newkid")

        with patch.object(self.store, "create_profile", side_effect=ProfileError("insert failed")):
            with self.assertLogs("kidslearn", level="ERROR"):
                response = self.unauthenticated_client.post(reverse("login"), {
                    "email": "noprofile@gmail.com",
                    "password": "password"
                })

        self.assertContains(response, "Error creating profile.")
        self.assertNotIn("username", self.unauthenticated_client.session)

    def test_register_with_active_session_logs_in(self):
        response = self.unauthenticated_client.post(reverse("register"), {
            "username": "SuperLearner123",
            "email": "newuser@example.com",
            "password": "strongpassword123"
        })

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("home"))
        self.assertEqual(self.unauthenticated_client.session["username"], "SuperLearner123")

        profile = self.store.get_profile(self.unauthenticated_client.session["user_id"])
        self.assertEqual(profile.username, "SuperLearner123")
        self.assertEqual(profile.total_score, 0)

    def test_register_waiting_for_confirmation(self):
        self.store.auto_confirm = False

        response = self.unauthenticated_client.post(reverse("register"), {
            "username": "newuser",
            "email": "newuser@example.com",
            "password": "strongpassword123"
        }, follow=True)

        self.assertRedirects(response, reverse("confirm_email"))
        self.assertContains(response, "Check Your Email")
        self.assertContains(response, "newuser@example.com")
        self.assertNotIn("username", self.unauthenticated_client.session)
        self.assertEqual(len(self.store.pending_confirmations), 1)

    def test_register_duplicate_email(self):
        with self.assertLogs("kidslearn", level="ERROR"):
            response = self.unauthenticated_client.post(reverse("register"), {
                "username": "someoneelse",
                "email": "testuser@gmail.com",
                "password": "somepass123"
            })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.template_name[0], "registration/register.html")
        self.assertContains(response, "User already registered")

    def test_register_invalid_form(self):
        response = self.unauthenticated_client.post(reverse("register"), {
            "username": "   ",
            "email": "not-an-email",
            "password": "abc"
        })

        self.assertEqual(response.status_code, 200)
        form = response.context["form"]
        self.assertIn("username", form.errors)
        self.assertIn("email", form.errors)
        self.assertIn("password", form.errors)

    def test_confirm_email_valid_token(self):
        self.store.auto_confirm = False
        identity = self.store.sign_up(email="pending@example.com", password="password", username="pendingkid")
        token_hash = next(iter(self.store.pending_confirmations))

        response = self.unauthenticated_client.get(reverse("confirm_email_handler"), {"token_hash": token_hash})

        self.assertRedirects(response, reverse("home"))
        self.assertEqual(self.unauthenticated_client.session["username"], "pendingkid")
        self.assertEqual(self.store.get_profile(identity.id).current_level, "Beginner")

    def test_confirm_email_keeps_existing_profile(self):
        self.store.auto_confirm = False
        identity = self.store.sign_up(email="pending@example.com", password="password", username="pendingkid")
        self.store.create_profile(identity.id, "pendingkid")
        self.store.update_total_score(identity.id, 12)
        token_hash = next(iter(self.store.pending_confirmations))

        self.unauthenticated_client.get(reverse("confirm_email_handler"), {"token_hash": token_hash})

        self.assertEqual(self.store.get_profile(identity.id).total_score, 12)

    def test_confirm_email_invalid_token(self):
        with self.assertLogs("kidslearn", level="ERROR"):
            response = self.unauthenticated_client.get(reverse("confirm_email_handler"),
                                                       {"token_hash": "invalid-token"})

        self.assertRedirects(response, reverse("login"))
        messages = list(get_messages(response.wsgi_request))
        self.assertTrue(any(m.message == "That confirmation link is not valid or has expired." for m in messages))
        self.assertNotIn("username", self.unauthenticated_client.session)

    def test_confirm_email_missing_token(self):
        with self.assertLogs("kidslearn", level="ERROR"):
            response = self.unauthenticated_client.get(reverse("confirm_email_handler"))

        self.assertRedirects(response, reverse("login"))

    def test_confirm_email_profile_error(self):
        with patch.object(self.store, "verify_email", return_value=self.test_user):
            with patch.object(self.store, "get_profile", side_effect=ProfileError("boom")):
                with self.assertLogs("kidslearn", level="ERROR"):
                    response = self.unauthenticated_client.get(reverse("confirm_email_handler"),
                                                               {"token_hash": "abc"})

        self.assertRedirects(response, reverse("login"))
        messages = list(get_messages(response.wsgi_request))
        self.assertTrue(any(m.message == "Error creating profile." for m in messages))

    def test_logout_clears_session_flag(self):
        with patch.object(self.store, "sign_out") as sign_out:
            response = self.authenticated_client.post(reverse("logout"))

        self.assertRedirects(response, reverse("login"))
        sign_out.assert_called_once()
        self.assertNotIn("username", self.authenticated_client.session)

    def test_logout_sign_out_failure_still_clears(self):
        with patch.object(self.store, "sign_out", side_effect=AuthenticationError("token expired")):
            with self.assertLogs("kidslearn", level="ERROR"):
                self.authenticated_client.post(reverse("logout"))

        self.assertNotIn("username", self.authenticated_client.session)

    def test_logout_requires_post(self):
        response = self.authenticated_client.get(reverse("logout"))
        self.assertEqual(response.status_code, 405)
        self.assertIn("username", self.authenticated_client.session)

    def test_home_requires_session_flag(self):
        response = self.unauthenticated_client.get(reverse("home"))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, f"{reverse('login')}?next=%2F")

    def test_home_greets_user(self):
        response = self.authenticated_client.get(reverse("home"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "homepage.html")
        self.assertContains(response, "Welcome to KidsLearn!")
        self.assertContains(response, "Hi, testuser!")

    def test_navbar_offers_login_when_logged_out(self):
        response = self.unauthenticated_client.get(reverse("login"))
        self.assertContains(response, "Login")
        self.assertNotContains(response, "Hi, ")


class SessionContextTestCase(TestCase):

    def setUp(self):
        self.session = SessionStore()
        self.context = SessionContext(self.session)

    def test_empty_session_is_not_authenticated(self):
        self.assertFalse(self.context.is_authenticated)
        self.assertIsNone(self.context.username)
        self.assertEqual(self.context.access_token, "")

    def test_set_then_clear(self):
        self.context.set("user-1", "testuser", "token")

        self.assertTrue(self.context.is_authenticated)
        self.assertEqual(self.context.user_id, "user-1")
        self.assertEqual(self.context.username, "testuser")
        self.assertEqual(self.context.access_token, "token")

        self.context.clear()

        self.assertFalse(self.context.is_authenticated)
        self.assertIsNone(self.context.user_id)

    def test_blank_username_is_not_authenticated(self):
        self.context.set("user-1", "")
        self.assertFalse(self.context.is_authenticated)
