import copy
import logging
import secrets
import uuid

from django.contrib.auth.hashers import check_password, make_password

from store.base import AuthIdentity, AuthenticationError, CredentialStore, Profile, ProfileError
from store.seed import QUESTIONS

logger = logging.getLogger("kidslearn")


class InMemoryCredentialStore(CredentialStore):
    """
    Process-local stand-in for the hosted backend. Used by the test-suite and
    for running the site without a Supabase project.

    With ``auto_confirm`` off, sign-ups stay pending until ``verify_email`` is
    called with the token found in ``pending_confirmations``.
    """

    def __init__(self, quizzes=None, auto_confirm=True):
        self.quizzes = copy.deepcopy(QUESTIONS if quizzes is None else list(quizzes))
        self.auto_confirm = auto_confirm
        self.users = {}
        self.profiles = {}
        self.results = []
        self.pending_confirmations = {}

    def fetch_quizzes(self):
        return copy.deepcopy(self.quizzes)

    def upsert_quizzes(self, rows):
        by_id = {row["id"]: row for row in self.quizzes}
        for row in rows:
            by_id[row["id"]] = dict(row)
        self.quizzes = list(by_id.values())

    def insert_result(self, user_id, quiz_id, score):
        self.results.append({"user_id": user_id, "quiz_id": quiz_id, "score": score})

    def get_profile(self, user_id):
        profile = self.profiles.get(user_id)
        return copy.copy(profile) if profile else None

    def create_profile(self, user_id, username):
        if user_id in self.profiles:
            raise ProfileError(f"Profile {user_id} already exists")
        profile = Profile(id=user_id, username=username)
        self.profiles[user_id] = profile
        return copy.copy(profile)

    def update_total_score(self, user_id, total_score):
        try:
            self.profiles[user_id].total_score = total_score
        except KeyError:
            raise ProfileError(f"No profile for {user_id}")

    def top_profiles(self, limit):
        ranked = sorted(self.profiles.values(), key=lambda p: p.total_score, reverse=True)
        return [copy.copy(p) for p in ranked[:limit]]

    def sign_up(self, email, password, username):
        email = email.lower()
        if email in self.users:
            raise AuthenticationError("User already registered")

        user = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password": make_password(password),
            "username": username,
            "confirmed": self.auto_confirm,
        }
        self.users[email] = user

        if not self.auto_confirm:
            token_hash = secrets.token_urlsafe(16)
            self.pending_confirmations[token_hash] = email
            logger.debug(f"Confirmation token for {email} === {token_hash}")

        return self._identity(user, has_session=self.auto_confirm)

    def sign_in(self, email, password):
        user = self.users.get(email.lower())
        if user is None or not check_password(password, user["password"]):
            raise AuthenticationError("Invalid login credentials")
        if not user["confirmed"]:
            raise AuthenticationError("Email not confirmed")
        return self._identity(user)

    def verify_email(self, token_hash):
        email = self.pending_confirmations.pop(token_hash, None)
        if email is None:
            raise AuthenticationError("Email link is invalid or has expired")
        user = self.users[email]
        user["confirmed"] = True
        return self._identity(user)

    def sign_out(self, access_token):
        pass

    def _identity(self, user, has_session=True):
        return AuthIdentity(id=user["id"], email=user["email"], username=user["username"],
                            has_session=has_session,
                            access_token=secrets.token_urlsafe(24) if has_session else "")
