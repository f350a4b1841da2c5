from django import forms
from django.contrib.auth import password_validation
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import transaction

from .models import Complaint, Role, UserProfile


class LoginForm(forms.Form):
    email = forms.EmailField(label="Email Address")
    password = forms.CharField(label="Password", strip=False)


class RegisterForm(forms.Form):
    name = forms.CharField(label="Full Name", max_length=150)
    email = forms.EmailField(label="Email Address")
    password = forms.CharField(label="Password", strip=False)
    student_id = forms.CharField(label="Student ID", max_length=50, required=False)
    department = forms.CharField(label="Department", max_length=100, required=False)

    def clean_email(self):
        email = self.cleaned_data.get('email', '').lower()
        if User.objects.filter(email__iexact=email).exists():
            raise ValidationError("This email is already registered.")
        return email

    def clean_password(self):
        password = self.cleaned_data.get('password')
        password_validation.validate_password(password)
        return password

    @transaction.atomic
    def save(self):
        data = self.cleaned_data
        first_name, _, last_name = data['name'].strip().partition(' ')
        user = User(
            username=data['email'],
            email=data['email'],
            first_name=first_name,
            last_name=last_name.strip(),
        )
        user.set_password(data['password'])
        user.save()
        UserProfile.objects.create(
            user=user,
            role=Role.STUDENT,
            student_id=data.get('student_id', ''),
            department=data.get('department', ''),
        )
        return user


class ComplaintFilterForm(forms.Form):
    status = forms.ChoiceField(
        choices=[('', 'All Statuses')] + Complaint.Status.choices,
        required=False,
    )
    category = forms.ChoiceField(
        choices=[('', 'All Categories')] + Complaint.Category.choices,
        required=False,
    )
    priority = forms.ChoiceField(
        choices=[('', 'All Priorities')] + Complaint.Priority.choices,
        required=False,
    )
    search = forms.CharField(max_length=200, required=False)
