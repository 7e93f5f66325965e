import logging

from django.contrib import messages
from django.shortcuts import redirect, render
from django.views.decorators.http import require_GET, require_POST

from accounts.decorators import session_required
from quiz.engine import QuizNotActive, QuizProgression
from quiz.forms import AnswerForm
from quiz.services import QuizLoadError, ResultRecorder, load_questions
from store.decorators import store_must_be_online
from store.utils import get_credential_store

logger = logging.getLogger("kidslearn")

QUIZ_RUN_KEY = "quiz_run"


@require_GET
@session_required
def quiz_view(request):
    run = request.session.get(QUIZ_RUN_KEY)

    if run is None:
        return redirect("start_quiz")

    engine = QuizProgression.from_session(run)

    if engine.is_complete:
        return render(request, "quiz/quiz_complete.html", {
            "score": engine.score,
            "total_questions": engine.total_questions,
        })

    question = engine.current

    context = {
        "run_id": engine.run_id,
        "question": question,
        "question_number": engine.state.current_question + 1,
        "total_questions": engine.total_questions,
        "options": list(enumerate(question.options)),
    }
    return render(request, "quiz/quiz.html", context)


@require_GET
@session_required
@store_must_be_online
def start_quiz(request):
    if QUIZ_RUN_KEY in request.session:
        return redirect("quiz")

    engine = QuizProgression()

    try:
        engine.load(load_questions(get_credential_store()))
    except QuizLoadError as e:
        return render(request, "quiz/quiz_error.html", {"error": str(e)}, status=502)

    if not engine.is_available:
        return render(request, "quiz/no_questions.html")

    request.session[QUIZ_RUN_KEY] = engine.to_session()
    logger.debug(f"Quiz started for {request.session_context.username} with {engine.total_questions} questions")
    return redirect("quiz")


@require_POST
@session_required
def submit_answer(request):
    run = request.session.get(QUIZ_RUN_KEY)

    if run is None:
        return redirect("start_quiz")

    completed = []
    engine = QuizProgression.from_session(
        run,
        persist=ResultRecorder(get_credential_store(), request.session_context.user_id, run_id=run.get("run_id")),
        on_complete=completed.append,
    )

    if engine.current is None:
        messages.info(request, "This quiz is already finished.")
        return redirect("quiz")

    form = AnswerForm(request.POST, number_of_options=len(engine.current.options))

    if not form.is_valid():
        logger.error(form.errors)
        messages.error(request, "Please pick one of the answers.")
        return redirect("quiz")

    if not form.answers(engine):
        logger.warning(f"Stale answer from {request.session_context.username}: {form.cleaned_data}")
        messages.error(request, "That answer was for a different question. Please try again.")
        return redirect("quiz")

    try:
        engine.submit_answer(form.cleaned_data["option"])
    except QuizNotActive as e:
        logger.error(e)
        messages.info(request, "This quiz is already finished.")
        return redirect("quiz")

    request.session[QUIZ_RUN_KEY] = engine.to_session()

    if completed:
        messages.success(request, f"Quiz complete! You scored {completed[0]} out of {engine.total_questions}.")

    return redirect("quiz")


@require_POST
@session_required
def restart_quiz(request):
    request.session.pop(QUIZ_RUN_KEY, None)
    return redirect("start_quiz")
