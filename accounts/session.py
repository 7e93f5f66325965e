import logging

logger = logging.getLogger("kidslearn")

USERNAME_KEY = "username"
USER_ID_KEY = "user_id"
ACCESS_TOKEN_KEY = "access_token"


class SessionContext:
    """
    Who is logged in, as far as this site is concerned.

    Wraps the Django session: a recorded username is the flag the protected
    views check. ``set`` is called after login, registration with an active
    session, or email confirmation; ``clear`` on logout.
    """

    def __init__(self, session):
        self._session = session

    @property
    def username(self):
        return self._session.get(USERNAME_KEY)

    @property
    def user_id(self):
        return self._session.get(USER_ID_KEY)

    @property
    def access_token(self):
        return self._session.get(ACCESS_TOKEN_KEY, "")

    @property
    def is_authenticated(self):
        return bool(self.username)

    def set(self, user_id, username, access_token=""):
        # New identity, new session key
        self._session.cycle_key()
        self._session[USER_ID_KEY] = user_id
        self._session[USERNAME_KEY] = username
        self._session[ACCESS_TOKEN_KEY] = access_token
        logger.debug(f"Session flag set for {username}")

    def clear(self):
        self._session.flush()


class SessionContextMiddleware:
    """Attach ``request.session_context``. Must come after SessionMiddleware."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.session_context = SessionContext(request.session)
        return self.get_response(request)
