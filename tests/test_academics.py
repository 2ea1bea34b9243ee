"""
Tests for academic years, terms, grades and classes.
"""
from datetime import date

import pytest
from django.core.exceptions import ValidationError

from academics.models import AcademicYear, Term, normalize_term_name, term_order
from academics.services import AcademicYearService, ClassService, GradeService


class TestTermNames:
    @pytest.mark.parametrize("value, expected", [
        ("Term 1", "Term 1"),
        ("FIRST", "Term 1"),
        ("second", "Term 2"),
        ("3", "Term 3"),
        (" term3 ", "Term 3"),
    ])
    def test_aliases(self, value, expected) -> None:
        assert normalize_term_name(value) == expected

    def test_unknown_term(self) -> None:
        with pytest.raises(ValidationError):
            normalize_term_name("Term 4")

    def test_unknown_terms_sort_last(self) -> None:
        assert term_order("Term 1") < term_order("Term 3") < term_order("Summer")


@pytest.mark.django_db
class TestAcademicYears:
    def test_year_spans_calendar_year(self, school) -> None:
        year, created = AcademicYearService.get_or_create_year(school, "2025")

        assert created
        assert (year.start_date, year.end_date) == (date(2025, 1, 1), date(2025, 12, 31))
        assert AcademicYearService.get_or_create_year(school, "2025") == (year, False)

    def test_invalid_year_name(self, school) -> None:
        with pytest.raises(ValidationError):
            AcademicYearService.get_or_create_year(school, "next year")

    @pytest.mark.parametrize("name", ["0000", "0999", "1899"])
    def test_year_out_of_range(self, school, name) -> None:
        with pytest.raises(ValidationError, match="out of range"):
            AcademicYearService.get_or_create_year(school, name)

        assert not AcademicYear.all_objects.filter(school=school).exists()

    def test_terms_span_four_months(self, academic_year) -> None:
        terms = list(academic_year.terms.order_by("order"))

        assert [(t.start_date, t.end_date) for t in terms] == [
            (date(2025, 1, 1), date(2025, 4, 30)),
            (date(2025, 5, 1), date(2025, 8, 31)),
            (date(2025, 9, 1), date(2025, 12, 31)),
        ]

    def test_one_current_year_per_school(self, school, academic_year) -> None:
        later = AcademicYearService.create_year_with_terms(school, "2026", make_current=True)

        academic_year.refresh_from_db()
        assert later.is_current
        assert not academic_year.is_current
        assert AcademicYearService.get_current_year(school) == later

    def test_current_term_falls_back_to_first_term(self, school, academic_year) -> None:
        assert AcademicYearService.get_current_term(school).name == "Term 1"

        term = Term.all_objects.get(academic_year=academic_year, name="Term 2")
        term.is_current = True
        term.save()
        assert AcademicYearService.get_current_term(school) == term

    def test_next_year_name(self, academic_year) -> None:
        assert academic_year.next_year_name() == "2026"


@pytest.mark.django_db
class TestGradesAndClasses:
    def test_seeded_progression(self, school, grades) -> None:
        rules = GradeService.get_progression(school)

        assert [(rule["from"], rule["to"]) for rule in rules] == [
            ("Grade 1", "Grade 2"),
            ("Grade 2", "Grade 3"),
            ("Grade 3", "Grade 4"),
            ("Grade 4", "Grade 5"),
            ("Grade 5", "Grade 6"),
            ("Grade 6", "Alumni"),
        ]
        assert rules[-1]["is_graduation"] is True

    def test_seeding_twice_keeps_grades(self, school, grades) -> None:
        again = GradeService.seed_default_grades(school)
        assert {grade.pk for grade in again} == {grade.pk for grade in grades.values()}

    def test_find_or_create_class(self, school, grades, academic_year, grade1_class) -> None:
        found, created = ClassService.find_or_create_class(school, grades["Grade 1"], academic_year)
        assert not created
        assert found == grade1_class

        new, created = ClassService.find_or_create_class(school, grades["Grade 2"], academic_year)
        assert created
        assert new.name == "Grade 2"

    def test_next_class_name_keeps_stream(self, grades, grade1_class) -> None:
        assert ClassService.next_class_name(grade1_class, grades["Grade 2"]) == "Grade 2A"


@pytest.mark.django_db
class TestAcademicEndpoints:
    def test_create_year(self, admin_client, api, school) -> None:
        response = admin_client.post(
            api("academic-years/"), {"name": "2027", "make_current": True}, content_type="application/json"
        )

        assert response.status_code == 201
        assert len(response.json()["data"]["terms"]) == 3
        assert AcademicYear.all_objects.get(school=school, name="2027").is_current

    def test_bursar_cannot_create_year(self, bursar_client, api, school) -> None:
        response = bursar_client.post(api("academic-years/"), {"name": "2027"}, content_type="application/json")
        assert response.status_code == 403

    def test_current_year(self, teacher_client, api, academic_year) -> None:
        data = teacher_client.get(api("academic-years/current/")).json()["data"]
        assert data["academic_year"]["name"] == "2025"
        assert data["term"]["name"] == "Term 1"

    def test_set_current_term(self, admin_client, api, academic_year) -> None:
        response = admin_client.post(api(f"academic-years/{academic_year.pk}/terms/SECOND/set-current/"))

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Term 2"

    def test_create_class(self, admin_client, api, grades, academic_year) -> None:
        payload = {
            "grade": str(grades["Grade 3"].pk),
            "academic_year": str(academic_year.pk),
            "name": "Grade 3B",
            "capacity": 40,
        }
        response = admin_client.post(api("classes/"), payload, content_type="application/json")
        assert response.status_code == 201

        duplicate = admin_client.post(api("classes/"), payload, content_type="application/json")
        assert duplicate.status_code == 400

    def test_create_year_out_of_range(self, admin_client, api, school) -> None:
        response = admin_client.post(api("academic-years/"), {"name": "0000"}, content_type="application/json")

        assert response.status_code == 400
        assert "name" in response.json()["errors"]

    def test_progression_endpoint(self, teacher_client, api, grades) -> None:
        data = teacher_client.get(api("progression/")).json()["data"]
        assert data[0]["from"] == "Grade 1"
