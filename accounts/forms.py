from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

User = get_user_model()


class RegistrationForm(forms.ModelForm):
    """Self-service sign-up. Admin accounts are created through the admin site."""

    password = forms.CharField(min_length=8, strip=False)
    role = forms.ChoiceField(
        choices=[
            (User.Role.SHIPPER, User.Role.SHIPPER.label),
            (User.Role.CARRIER, User.Role.CARRIER.label),
        ]
    )

    class Meta:
        model = User
        fields = [
            "email",
            "first_name",
            "last_name",
            "role",
            "phone",
            "company_name",
            "country",
            "fiscal_number",
        ]

    def clean_country(self):
        return (self.cleaned_data.get("country") or "").upper()

    def clean_password(self):
        password = self.cleaned_data["password"]
        validate_password(password)
        return password

    def save(self, commit=True):
        user = super().save(commit=False)
        user.username = user.email
        user.set_password(self.cleaned_data["password"])
        if commit:
            user.save()
        return user


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(strip=False)


class ProfileForm(forms.ModelForm):
    class Meta:
        model = User
        fields = [
            "first_name",
            "last_name",
            "phone",
            "company_name",
            "country",
            "fiscal_number",
        ]

    def clean_country(self):
        return (self.cleaned_data.get("country") or "").upper()


class UserStatusForm(forms.Form):
    status = forms.ChoiceField(choices=User.Status.choices)


class DocumentsVerificationForm(forms.Form):
    verified = forms.BooleanField(required=False)
