from django import forms


class SignUpForm(forms.Form):
    username = forms.CharField(label="Choose your username", max_length=64,
                               widget=forms.TextInput(attrs={"placeholder": "e.g., SuperLearner123"}))
    email = forms.EmailField(label="Email address",
                             widget=forms.EmailInput(attrs={"placeholder": "you@example.com"}))
    password = forms.CharField(label="Password", min_length=6,
                               widget=forms.PasswordInput(attrs={"placeholder": "Your secret password"}))

    def clean_username(self):
        username = self.cleaned_data["username"].strip()
        if not username:
            raise forms.ValidationError("Please choose a username.")
        return username


class LoginForm(forms.Form):
    email = forms.EmailField(label="Email address",
                             widget=forms.EmailInput(attrs={"placeholder": "you@example.com"}))
    password = forms.CharField(label="Password",
                               widget=forms.PasswordInput(attrs={"placeholder": "Your secret password"}))
