# accounts/forms.py
from django import forms


class PortalLoginForm(forms.Form):
    """Credentials for the admin, bursar, parent and student portals"""

    email = forms.CharField(
        max_length=254,
        help_text="Email address or username"
    )
    password = forms.CharField(widget=forms.PasswordInput)
    remember_me = forms.BooleanField(required=False)

    def clean_email(self):
        return self.cleaned_data['email'].strip()
