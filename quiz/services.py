import logging

from django.conf import settings
from django.core.cache import cache

from quiz.engine import DIFFICULTIES, Question
from store.base import CredentialStoreError

logger = logging.getLogger("kidslearn")


class QuizLoadError(Exception):
    pass


def load_questions(store):
    """Fetch every quiz row, easy questions first, and turn them into Questions."""
    try:
        rows = store.fetch_quizzes()
    except CredentialStoreError as e:
        logger.error(e)
        raise QuizLoadError(str(e)) from e

    try:
        questions = [Question.from_row(row) for row in rows]
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Malformed quiz row: {e}")
        raise QuizLoadError("Quiz data is malformed") from e

    return sorted(questions, key=lambda q: (DIFFICULTIES.index(q.difficulty), q.id))


class ResultRecorder:
    """
    Saves a finished run: one progress row, plus the score added to the profile total.

    A run with a ``run_id`` is recorded at most once. The first call claims the
    id in the cache; a replayed final answer (double submit, stale session)
    finds the claim taken and records nothing.
    """

    def __init__(self, store, user_id, run_id=None):
        self.store = store
        self.user_id = user_id
        self.run_id = run_id

    def claim(self) -> bool:
        if self.run_id is None:
            return True
        return cache.add(f"quiz-run-{self.run_id}-recorded", True, settings.QUIZ_RUN_CLAIM_TIMEOUT)

    def __call__(self, quiz_id, score):
        if not self.claim():
            logger.warning(f"Run {self.run_id} for {self.user_id} was already recorded")
            return

        self.store.insert_result(self.user_id, quiz_id, score)

        profile = self.store.get_profile(self.user_id)
        if profile is None:
            raise CredentialStoreError(f"No profile for {self.user_id}")

        self.store.update_total_score(self.user_id, profile.total_score + score)
        logger.info(f"Recorded score {score} for {self.user_id}, total now {profile.total_score + score}")
