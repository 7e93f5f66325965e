from django import forms
from django.core.validators import MaxValueValidator


class AnswerForm(forms.Form):
    """One answer, tied to the run and the question it was shown for."""
    run_id = forms.CharField(widget=forms.HiddenInput)
    question_id = forms.IntegerField(widget=forms.HiddenInput)
    option = forms.IntegerField(min_value=0)

    def __init__(self, *args, number_of_options=None, **kwargs):
        super().__init__(*args, **kwargs)
        if number_of_options is not None:
            self.fields["option"].validators.append(MaxValueValidator(number_of_options - 1))

    def answers(self, engine) -> bool:
        """Whether this answer was given for the engine's current question."""
        question = engine.current
        return (
            question is not None
            and self.cleaned_data["run_id"] == engine.run_id
            and self.cleaned_data["question_id"] == question.id
        )
