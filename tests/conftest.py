"""
Pytest configuration and fixtures.
"""
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.test import Client

from accounts.models import School, UserProfile
from academics.services import AcademicYearService, GradeService, ClassService
from edusms.managers import clear_current_school
from students.models import Parent, Student

User = get_user_model()

PASSWORD = "s3cret-pass-123"


@pytest.fixture(autouse=True)
def reset_current_school():
    """Never leak a bound school between tests."""
    clear_current_school()
    yield
    clear_current_school()


@pytest.fixture
def school(db) -> School:
    """An active school with KES receipts."""
    return School.objects.create(
        name="Greenfield Academy",
        code="greenfield",
        address="P.O. Box 100, Nairobi",
        phone="+254700000000",
        email="office@greenfield.example.com",
        currency="KES",
    )


@pytest.fixture
def other_school(db) -> School:
    return School.objects.create(name="Hillside School", code="hillside", currency="KES")


@pytest.fixture
def academic_year(school):
    """2025 with Term 1..3, current."""
    return AcademicYearService.create_year_with_terms(school, "2025", make_current=True)


@pytest.fixture
def grades(school) -> dict:
    """Grade 1..6 plus Alumni, keyed by name."""
    return {grade.name: grade for grade in GradeService.seed_default_grades(school)}


@pytest.fixture
def grade1_class(school, grades, academic_year):
    school_class, _ = ClassService.find_or_create_class(school, grades["Grade 1"], academic_year, name="Grade 1A")
    return school_class


@pytest.fixture
def grade6_class(school, grades, academic_year):
    school_class, _ = ClassService.find_or_create_class(school, grades["Grade 6"], academic_year, name="Grade 6A")
    return school_class


@pytest.fixture
def make_student(school):
    """Factory for students of ``school``."""
    counter = {"n": 0}

    def _make(school_class=None, **kwargs):
        counter["n"] += 1
        defaults = {
            "first_name": f"Student{counter['n']}",
            "last_name": "Test",
            "average_score": Decimal("80.00"),
        }
        defaults.update(kwargs)
        return Student.all_objects.create(school=school, current_class=school_class, **defaults)

    return _make


@pytest.fixture
def student(make_student, grade1_class):
    return make_student(grade1_class, first_name="Amina", last_name="Otieno")


# =============================================================================
# USERS & CLIENTS
# =============================================================================

@pytest.fixture
def make_user(db):
    def _make(username, role, school=None, **kwargs):
        user = User.objects.create_user(
            username=username,
            email=f"{username}@example.com",
            password=PASSWORD,
            **kwargs,
        )
        UserProfile.objects.create(user=user, school=school, role=role)
        return user

    return _make


@pytest.fixture
def admin_user(make_user, school):
    return make_user("admin", UserProfile.ROLE_ADMIN, school, first_name="Grace", last_name="Admin")


@pytest.fixture
def bursar_user(make_user, school):
    return make_user("bursar", UserProfile.ROLE_BURSAR, school, first_name="Peter", last_name="Bursar")


@pytest.fixture
def teacher_user(make_user, school):
    return make_user("teacher", UserProfile.ROLE_TEACHER, school)


@pytest.fixture
def parent_user(make_user, school, student):
    user = make_user("parent", UserProfile.ROLE_PARENT, school)
    parent = Parent.all_objects.create(school=school, user=user, first_name="Mary", last_name="Otieno", phone="+254711111111")
    student.parent = parent
    student.save()
    return user


@pytest.fixture
def student_user(make_user, school, student):
    user = make_user("amina", UserProfile.ROLE_STUDENT, school)
    student.user = user
    student.save()
    return user


def _client_for(user) -> Client:
    client = Client()
    client.force_login(user)
    return client


@pytest.fixture
def admin_client(admin_user) -> Client:
    return _client_for(admin_user)


@pytest.fixture
def bursar_client(bursar_user) -> Client:
    return _client_for(bursar_user)


@pytest.fixture
def teacher_client(teacher_user) -> Client:
    return _client_for(teacher_user)


@pytest.fixture
def parent_client(parent_user) -> Client:
    return _client_for(parent_user)


@pytest.fixture
def student_client(student_user) -> Client:
    return _client_for(student_user)


@pytest.fixture
def api():
    """URL builder: api('bursar/payments/') -> /api/schools/greenfield/bursar/payments/"""
    def _url(path, code="greenfield"):
        return f"/api/schools/{code}/{path}"

    return _url
