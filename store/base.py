from dataclasses import dataclass
from typing import Optional

DEFAULT_LEVEL = "Beginner"


class CredentialStoreError(Exception):
    """Base error for anything the hosted backend refused or failed to do."""


class AuthenticationError(CredentialStoreError):
    pass


class ProfileError(CredentialStoreError):
    pass


@dataclass(frozen=True)
class AuthIdentity:
    id: str
    email: str
    username: str
    # False when the backend still waits for the email to be confirmed
    has_session: bool = True
    access_token: str = ""


@dataclass
class Profile:
    id: str
    username: str
    current_level: str = DEFAULT_LEVEL
    total_score: int = 0

    @classmethod
    def from_row(cls, row: dict):
        return cls(
            id=str(row["id"]),
            username=row.get("username") or "",
            current_level=row.get("current_level") or DEFAULT_LEVEL,
            total_score=int(row.get("total_score") or 0),
        )


class CredentialStore:
    """
    The operations the app needs from the hosted auth/database service.
    Implementations raise CredentialStoreError subclasses, never library errors.
    """

    def fetch_quizzes(self) -> list:
        raise NotImplementedError

    def upsert_quizzes(self, rows: list) -> None:
        raise NotImplementedError

    def insert_result(self, user_id: str, quiz_id: int, score: int) -> None:
        raise NotImplementedError

    def get_profile(self, user_id: str) -> Optional[Profile]:
        raise NotImplementedError

    def create_profile(self, user_id: str, username: str) -> Profile:
        raise NotImplementedError

    def update_total_score(self, user_id: str, total_score: int) -> None:
        raise NotImplementedError

    def top_profiles(self, limit: int) -> list:
        raise NotImplementedError

    def sign_up(self, email: str, password: str, username: str) -> AuthIdentity:
        raise NotImplementedError

    def sign_in(self, email: str, password: str) -> AuthIdentity:
        raise NotImplementedError

    def verify_email(self, token_hash: str) -> AuthIdentity:
        raise NotImplementedError

    def sign_out(self, access_token: str) -> None:
        raise NotImplementedError

    def is_online(self) -> bool:
        return True

    def ensure_profile(self, identity: AuthIdentity) -> Profile:
        profile = self.get_profile(identity.id)
        if profile is None:
            profile = self.create_profile(identity.id, identity.username)
        return profile
