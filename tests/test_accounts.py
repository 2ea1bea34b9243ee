"""
Tests for tenancy scoping, school authentication and school seeding.
"""
from io import StringIO

import pytest
from django.contrib.auth import authenticate
from django.core.management import CommandError, call_command

from accounts.models import School, UserProfile
from academics.models import AcademicYear, Grade, SchoolClass
from edusms.managers import SchoolContext, get_current_school
from fees.models import TermlyFeeStructure
from students.models import Student

pytestmark = pytest.mark.django_db

PASSWORD = "s3cret-pass-123"


class TestSchoolScoping:
    def test_default_manager_follows_bound_school(self, school, other_school, student) -> None:
        Student.all_objects.create(school=other_school, first_name="Zawadi", last_name="Kamau")

        with SchoolContext(school):
            assert [s.first_name for s in Student.objects.all()] == ["Amina"]
        with SchoolContext(other_school):
            assert [s.first_name for s in Student.objects.all()] == ["Zawadi"]

        assert Student.objects.count() == 2
        assert get_current_school() is None

    def test_nested_context_restores_previous_school(self, school, other_school) -> None:
        with SchoolContext(school):
            with SchoolContext(other_school):
                assert get_current_school() == other_school
            assert get_current_school() == school

    def test_create_assigns_bound_school(self, school) -> None:
        with SchoolContext(school):
            grade = Grade.objects.create(name="Grade 9", order=9)
        assert grade.school == school

    def test_school_code_is_normalized(self, db) -> None:
        school = School.objects.create(name="Lakeview", code="  LakeView ")
        assert school.code == "lakeview"


class TestSchoolAuthentication:
    def test_login_by_email_or_username(self, school, admin_user) -> None:
        assert authenticate(None, email="ADMIN@example.com", password=PASSWORD, school=school) == admin_user
        assert authenticate(None, username="admin", password=PASSWORD, school=school) == admin_user

    def test_other_school_is_refused(self, other_school, admin_user) -> None:
        assert authenticate(None, email="admin@example.com", password=PASSWORD, school=other_school) is None

    def test_account_locks_after_repeated_failures(self, school, admin_user, settings) -> None:
        settings.EDUSMS = {**settings.EDUSMS, "LOGIN_MAX_ATTEMPTS": 3}

        for _ in range(3):
            assert authenticate(None, email="admin@example.com", password="wrong", school=school) is None

        profile = UserProfile.objects.get(user=admin_user)
        assert profile.is_locked
        assert authenticate(None, email="admin@example.com", password=PASSWORD, school=school) is None

    def test_success_resets_failures(self, school, admin_user) -> None:
        authenticate(None, email="admin@example.com", password="wrong", school=school)
        authenticate(None, email="admin@example.com", password=PASSWORD, school=school)

        assert UserProfile.objects.get(user=admin_user).failed_login_attempts == 0


class TestSeedSchool:
    def test_seed_school(self) -> None:
        out = StringIO()
        call_command("seed_school", "riverside", "--name", "Riverside Primary", "--year", "2025", stdout=out)

        school = School.objects.get(code="riverside")
        assert school.name == "Riverside Primary"
        assert "is ready" in out.getvalue()

        year = AcademicYear.all_objects.get(school=school)
        assert year.name == "2025"
        assert year.is_current
        assert year.terms.get(is_current=True).name == "Term 1"

        assert Grade.all_objects.filter(school=school).count() == 7
        assert SchoolClass.all_objects.filter(school=school).count() == 6
        assert TermlyFeeStructure.all_objects.filter(school=school).count() == 18
        assert set(UserProfile.objects.filter(school=school).values_list("role", flat=True)) == {
            UserProfile.ROLE_ADMIN, UserProfile.ROLE_BURSAR,
        }
        assert authenticate(None, username="riverside_bursar", password="changeme123", school=school)

    def test_existing_school_is_refused(self, school) -> None:
        with pytest.raises(CommandError, match="already exists"):
            call_command("seed_school", "greenfield", stdout=StringIO())
