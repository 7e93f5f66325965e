import copy
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase, TestCase, Client, override_settings
from django.urls import reverse

from quiz.engine import Question, QuizNotActive, QuizProgression, QuizState
from quiz.forms import AnswerForm
from quiz.services import QuizLoadError, ResultRecorder, load_questions
from quiz.views import QUIZ_RUN_KEY
from store.base import CredentialStoreError
from store.memory import InMemoryCredentialStore
from store.utils import get_credential_store, reset_credential_store


def make_questions(*correct_answers):
    return [
        Question(id=i + 1, question=f"test_question_{i + 1}", options=("a", "b", "c", "d"),
                 correct_answer=correct, difficulty="easy")
        for i, correct in enumerate(correct_answers)
    ]


class QuizProgressionTestCase(SimpleTestCase):

    def setUp(self):
        self.persist = MagicMock()
        self.notifications = []
        self.engine = QuizProgression(persist=self.persist, on_complete=self.notifications.append)

    def test_all_correct_two_questions(self):
        self.engine.load(make_questions(1, 0))

        self.engine.submit_answer(1)
        self.engine.submit_answer(0)

        self.assertEqual(self.engine.score, 2)
        self.assertTrue(self.engine.is_complete)
        self.assertEqual(self.notifications, [2])

    def test_one_wrong_two_questions(self):
        self.engine.load(make_questions(1, 0))

        self.engine.submit_answer(0)
        self.engine.submit_answer(0)

        self.assertEqual(self.engine.score, 1)
        self.assertTrue(self.engine.is_complete)
        self.assertEqual(self.notifications, [1])

    def test_submit_returns_whether_answer_was_right(self):
        self.engine.load(make_questions(2, 3))
        self.assertTrue(self.engine.submit_answer(2))
        self.assertFalse(self.engine.submit_answer(0))

    def test_index_reaches_length_after_every_question_answered(self):
        for length in (1, 2, 5):
            engine = QuizProgression()
            engine.load(make_questions(*([0] * length)))
            for _ in range(length):
                engine.submit_answer(3)
            self.assertTrue(engine.is_complete)
            self.assertEqual(engine.state.current_question, length)

    def test_score_counts_matching_answers_for_every_prefix(self):
        self.engine.load(make_questions(0, 1, 2, 3, 0, 1))
        answers = [0, 0, 2, 1, 0, 3]
        expected = 0

        for k, (answer, question) in enumerate(zip(answers, self.engine.questions), start=1):
            self.engine.submit_answer(answer)
            if answer == question.correct_answer:
                expected += 1
            self.assertEqual(self.engine.score, expected)
            self.assertLessEqual(self.engine.score, k)
            self.assertEqual(self.engine.state.current_question, k)

    def test_answer_to_last_question_completes_the_run(self):
        self.engine.load(make_questions(0, 0, 0))

        self.engine.submit_answer(0)
        self.engine.submit_answer(1)
        self.assertFalse(self.engine.is_complete)
        self.assertEqual(self.notifications, [])
        self.persist.assert_not_called()

        self.engine.submit_answer(0)
        self.assertTrue(self.engine.is_complete)
        self.assertEqual(self.notifications, [2])

    def test_completion_persists_once_with_last_question_id(self):
        self.engine.load(make_questions(0, 1))

        self.engine.submit_answer(0)
        self.engine.submit_answer(1)

        self.persist.assert_called_once_with(2, 2)

    def test_no_submissions_after_completion(self):
        self.engine.load(make_questions(0))
        self.engine.submit_answer(0)

        with self.assertRaises(QuizNotActive):
            self.engine.submit_answer(0)

        self.persist.assert_called_once()
        self.assertEqual(self.notifications, [1])
        self.assertIsNone(self.engine.current)

    def test_empty_question_list_is_unavailable(self):
        self.engine.load([])

        self.assertFalse(self.engine.is_available)
        self.assertIsNone(self.engine.current)
        with self.assertRaises(QuizNotActive):
            self.engine.submit_answer(0)
        self.assertEqual(self.notifications, [])

    def test_persistence_failure_still_notifies(self):
        self.persist.side_effect = CredentialStoreError("Supabase is down")
        self.engine.load(make_questions(1, 0))

        self.engine.submit_answer(1)
        with self.assertLogs("kidslearn", level="ERROR") as logs:
            self.engine.submit_answer(0)

        self.assertEqual(self.notifications, [2])
        self.assertTrue(self.engine.is_complete)
        self.assertTrue(any("Supabase is down" in line for line in logs.output))

    def test_load_resets_state(self):
        self.engine.load(make_questions(0, 0))
        self.engine.submit_answer(0)

        self.engine.load(make_questions(1))

        self.assertEqual(self.engine.state, QuizState())

    def test_state_survives_session_round_trip(self):
        self.engine.load(make_questions(0, 1, 2))
        self.engine.submit_answer(0)

        restored = QuizProgression.from_session(self.engine.to_session())

        self.assertEqual(restored.questions, self.engine.questions)
        self.assertEqual(restored.state, QuizState(current_question=1, score=1, is_complete=False))
        self.assertEqual(restored.run_id, self.engine.run_id)

    def test_each_load_starts_a_new_run(self):
        self.engine.load(make_questions(0))
        first_run = self.engine.run_id

        self.engine.load(make_questions(0))

        self.assertIsNotNone(first_run)
        self.assertNotEqual(self.engine.run_id, first_run)

    def test_question_rejects_unknown_difficulty(self):
        with self.assertRaises(ValueError):
            Question(id=1, question="?", options=("a", "b"), correct_answer=0, difficulty="impossible")

    def test_question_rejects_out_of_range_answer(self):
        with self.assertRaises(ValueError):
            Question(id=1, question="?", options=("a", "b"), correct_answer=2, difficulty="easy")


class QuizServicesTestCase(SimpleTestCase):

    def test_load_questions_orders_by_difficulty_then_id(self):
        store = InMemoryCredentialStore(quizzes=[
            {"id": 9, "question": "h", "options": ["a", "b"], "correct_answer": 0, "difficulty": "hard"},
            {"id": 4, "question": "m", "options": ["a", "b"], "correct_answer": 1, "difficulty": "medium"},
            {"id": 7, "question": "e2", "options": ["a", "b"], "correct_answer": 0, "difficulty": "easy"},
            {"id": 2, "question": "e1", "options": ["a", "b"], "correct_answer": 0, "difficulty": "easy"},
        ])

        questions = load_questions(store)

        self.assertEqual([q.id for q in questions], [2, 7, 4, 9])
        self.assertEqual(questions[0].options, ("a", "b"))

    def test_load_questions_store_failure(self):
        store = MagicMock()
        store.fetch_quizzes.side_effect = CredentialStoreError("timeout")

        with self.assertLogs("kidslearn", level="ERROR"):
            with self.assertRaises(QuizLoadError):
                load_questions(store)

    def test_load_questions_malformed_row(self):
        store = InMemoryCredentialStore(quizzes=[{"id": 1, "question": "missing options"}])

        with self.assertLogs("kidslearn", level="ERROR"):
            with self.assertRaises(QuizLoadError):
                load_questions(store)

    def test_result_recorder_inserts_result_and_adds_to_total(self):
        store = InMemoryCredentialStore()
        store.create_profile("user-1", "testuser")
        store.update_total_score("user-1", 7)

        ResultRecorder(store, "user-1")(5, 3)

        self.assertEqual(store.results, [{"user_id": "user-1", "quiz_id": 5, "score": 3}])
        self.assertEqual(store.get_profile("user-1").total_score, 10)

    def test_result_recorder_missing_profile(self):
        store = InMemoryCredentialStore()

        with self.assertRaises(CredentialStoreError):
            ResultRecorder(store, "ghost")(1, 1)

    def test_result_recorder_records_a_run_once(self):
        store = InMemoryCredentialStore()
        store.create_profile("user-1", "testuser")

        ResultRecorder(store, "user-1", run_id="run-once")(5, 3)
        with self.assertLogs("kidslearn", level="WARNING"):
            ResultRecorder(store, "user-1", run_id="run-once")(5, 3)

        self.assertEqual(len(store.results), 1)
        self.assertEqual(store.get_profile("user-1").total_score, 3)

    def test_answer_form_limits_option_range(self):
        answer = {"run_id": "abc", "question_id": "1"}
        self.assertTrue(AnswerForm({**answer, "option": "3"}, number_of_options=4).is_valid())
        self.assertFalse(AnswerForm({**answer, "option": "4"}, number_of_options=4).is_valid())
        self.assertFalse(AnswerForm({**answer, "option": "-1"}, number_of_options=4).is_valid())
        self.assertFalse(AnswerForm({**answer, "option": "cat"}, number_of_options=4).is_valid())
        self.assertFalse(AnswerForm({"option": "3"}, number_of_options=4).is_valid())

    def test_answer_form_matches_current_question(self):
        engine = QuizProgression()
        engine.load(make_questions(0, 1))

        def form(run_id, question_id):
            answer = AnswerForm({"run_id": run_id, "question_id": question_id, "option": "0"}, number_of_options=4)
            self.assertTrue(answer.is_valid())
            return answer

        self.assertTrue(form(engine.run_id, "1").answers(engine))
        self.assertFalse(form(engine.run_id, "2").answers(engine))
        self.assertFalse(form("another-run", "1").answers(engine))


@override_settings(CREDENTIAL_STORE="memory")
class QuizViewTestCase(TestCase):

    def setUp(self):
        reset_credential_store()
        self.store = get_credential_store()
        self.identity = self.store.sign_up(email="testuser@gmail.com", password="password", username="testuser")
        self.store.create_profile(self.identity.id, "testuser")

        # Every test needs a client.
        self.authenticated_client = Client()
        self.authenticated_client.post(reverse("login"), {"email": "testuser@gmail.com", "password": "password"})
        self.unauthenticated_client = Client()

    def tearDown(self):
        reset_credential_store()

    def answer(self, option, run=None):
        """Post an answer the way the question page does, for the run in the session unless one is given."""
        run = run or self.authenticated_client.session[QUIZ_RUN_KEY]
        index = min(run["state"]["current_question"], len(run["questions"]) - 1)
        return self.authenticated_client.post(reverse("submit_answer"), {
            "run_id": run["run_id"],
            "question_id": run["questions"][index]["id"],
            "option": option,
        }, follow=True)

    def test_unauthenticated_client_get_quiz(self):
        response = self.unauthenticated_client.get("/quizzes/")
        # Client not logged in so will do a redirect
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, f"{reverse('login')}?next=%2Fquizzes%2F")

    def test_unauthenticated_client_submit_answer(self):
        response = self.unauthenticated_client.post(reverse("submit_answer"), {"option": 1})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(self.store.results, [])

    def test_first_visit_starts_a_run(self):
        response = self.authenticated_client.get("/quizzes/", follow=True)

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "quiz/quiz.html")
        self.assertContains(response, "Question 1 of 5")
        self.assertContains(response, "What comes after the number 5?")
        self.assertEqual(response.context["question"].id, 1)
        self.assertIn(QUIZ_RUN_KEY, self.authenticated_client.session)

    def test_answers_advance_the_question(self):
        self.authenticated_client.get("/quizzes/", follow=True)

        response = self.answer(0)

        self.assertContains(response, "Question 2 of 5")
        state = self.authenticated_client.session[QUIZ_RUN_KEY]["state"]
        self.assertEqual(state, {"current_question": 1, "score": 0, "is_complete": False})

    def test_full_run_records_result_and_shows_score(self):
        self.authenticated_client.get("/quizzes/", follow=True)

        for option in (1, 1, 0, 1):
            self.answer(option)
        response = self.answer(1)

        self.assertTemplateUsed(response, "quiz/quiz_complete.html")
        self.assertContains(response, "Quiz Complete!")
        self.assertContains(response, "Your score: 4 / 5")
        self.assertContains(response, "Quiz complete! You scored 4 out of 5.")

        self.assertEqual(self.store.results, [{"user_id": self.identity.id, "quiz_id": 5, "score": 4}])
        self.assertEqual(self.store.get_profile(self.identity.id).total_score, 4)

    def test_persistence_failure_still_shows_final_score(self):
        self.authenticated_client.get("/quizzes/", follow=True)

        with patch.object(self.store, "insert_result", side_effect=CredentialStoreError("insert failed")):
            for option in (1, 1, 1, 1):
                self.answer(option)
            with self.assertLogs("kidslearn", level="ERROR"):
                response = self.answer(1)

        self.assertContains(response, "Your score: 5 / 5")
        self.assertContains(response, "Quiz complete! You scored 5 out of 5.")
        self.assertEqual(self.store.get_profile(self.identity.id).total_score, 0)

    def test_answer_after_completion_is_ignored(self):
        self.authenticated_client.get("/quizzes/", follow=True)
        for option in (1, 1, 1, 1, 1):
            self.answer(option)

        response = self.answer(1)

        self.assertContains(response, "This quiz is already finished.")
        self.assertEqual(len(self.store.results), 1)
        self.assertEqual(self.store.get_profile(self.identity.id).total_score, 5)

    def test_invalid_option_does_not_advance(self):
        self.authenticated_client.get("/quizzes/", follow=True)

        with self.assertLogs("kidslearn", level="ERROR"):
            response = self.answer(9)

        self.assertContains(response, "Please pick one of the answers.")
        self.assertContains(response, "Question 1 of 5")

    def test_submit_without_run_starts_one(self):
        response = self.authenticated_client.post(reverse("submit_answer"), {"option": 1})
        self.assertRedirects(response, reverse("start_quiz"), fetch_redirect_response=False)

    def test_no_questions_available(self):
        self.store.quizzes = []

        response = self.authenticated_client.get("/quizzes/", follow=True)

        self.assertTemplateUsed(response, "quiz/no_questions.html")
        self.assertContains(response, "No questions available.")
        self.assertNotIn(QUIZ_RUN_KEY, self.authenticated_client.session)

    def test_load_failure_renders_error_page(self):
        with patch.object(self.store, "fetch_quizzes", side_effect=CredentialStoreError("relation does not exist")):
            with self.assertLogs("kidslearn", level="ERROR"):
                response = self.authenticated_client.get(reverse("start_quiz"))

        self.assertEqual(response.status_code, 502)
        self.assertTemplateUsed(response, "quiz/quiz_error.html")
        self.assertContains(response, "Error: relation does not exist", status_code=502)

    def test_store_offline_renders_unavailable_page(self):
        with patch.object(self.store, "is_online", return_value=False):
            with self.assertLogs("kidslearn", level="ERROR"):
                response = self.authenticated_client.get(reverse("start_quiz"))

        self.assertEqual(response.status_code, 503)
        self.assertTemplateUsed(response, "store_unavailable.html")

    def test_restart_discards_the_run(self):
        self.authenticated_client.get("/quizzes/", follow=True)
        self.answer(1)

        response = self.authenticated_client.post(reverse("restart_quiz"), follow=True)

        self.assertContains(response, "Question 1 of 5")
        self.assertEqual(self.authenticated_client.session[QUIZ_RUN_KEY]["state"]["current_question"], 0)

    def test_restart_requires_post(self):
        response = self.authenticated_client.get(reverse("restart_quiz"))
        self.assertEqual(response.status_code, 405)

    def test_start_keeps_run_in_progress(self):
        self.authenticated_client.get("/quizzes/", follow=True)
        self.answer(1)

        response = self.authenticated_client.get(reverse("start_quiz"))

        self.assertRedirects(response, reverse("quiz"), fetch_redirect_response=False)
        state = self.authenticated_client.session[QUIZ_RUN_KEY]["state"]
        self.assertEqual(state, {"current_question": 1, "score": 1, "is_complete": False})

    def test_answer_for_previous_question_is_rejected(self):
        self.authenticated_client.get("/quizzes/", follow=True)
        page_for_first_question = copy.deepcopy(self.authenticated_client.session[QUIZ_RUN_KEY])
        self.answer(1)

        with self.assertLogs("kidslearn", level="WARNING"):
            response = self.answer(0, run=page_for_first_question)

        self.assertContains(response, "That answer was for a different question. Please try again.")
        self.assertContains(response, "Question 2 of 5")
        state = self.authenticated_client.session[QUIZ_RUN_KEY]["state"]
        self.assertEqual(state, {"current_question": 1, "score": 1, "is_complete": False})

    def test_answer_from_before_restart_is_rejected(self):
        self.authenticated_client.get("/quizzes/", follow=True)
        old_run = copy.deepcopy(self.authenticated_client.session[QUIZ_RUN_KEY])
        self.authenticated_client.post(reverse("restart_quiz"), follow=True)

        with self.assertLogs("kidslearn", level="WARNING"):
            response = self.answer(1, run=old_run)

        self.assertContains(response, "That answer was for a different question. Please try again.")
        self.assertContains(response, "Question 1 of 5")
        self.assertEqual(self.authenticated_client.session[QUIZ_RUN_KEY]["state"]["current_question"], 0)

    def test_replayed_final_answer_is_recorded_once(self):
        self.authenticated_client.get("/quizzes/", follow=True)
        for option in (1, 1, 1, 1):
            self.answer(option)
        before_final_answer = copy.deepcopy(self.authenticated_client.session[QUIZ_RUN_KEY])

        self.answer(1)

        # A second request still carrying the pre-completion session.
        session = self.authenticated_client.session
        session[QUIZ_RUN_KEY] = before_final_answer
        session.save()
        with self.assertLogs("kidslearn", level="WARNING"):
            response = self.answer(1)

        self.assertContains(response, "Your score: 5 / 5")
        self.assertEqual(self.store.results, [{"user_id": self.identity.id, "quiz_id": 5, "score": 5}])
        self.assertEqual(self.store.get_profile(self.identity.id).total_score, 5)
