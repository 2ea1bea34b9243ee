"""
Tests for students, alumni and admission numbers.
"""
from datetime import date
from decimal import Decimal
from io import BytesIO
import re

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from openpyxl import Workbook

from accounts.models import UserProfile
from students.excel import TEMPLATE_HEADERS, build_student_template
from students.forms import StudentForm, split_full_name
from students.models import Alumni, Parent, Student
from students.services import AlumniService, ParentService, StudentService
from students.utils import get_century_safe_year_suffix, score_to_letter

ADMISSION_NUMBER = re.compile(r"^[0-9A-Z]{2,3}/GREENFIE/\d{4}$")


def workbook_upload(rows, name="students.xlsx"):
    wb = Workbook()
    for row in rows:
        wb.active.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return SimpleUploadedFile(name, buffer.getvalue())


class TestCenturySafeSuffix:
    @pytest.mark.parametrize("year, expected", [
        (2024, "24"),
        (2099, "99"),
        (2100, "A00"),
        (2125, "A25"),
        (2200, "B00"),
    ])
    def test_suffix(self, year, expected) -> None:
        assert get_century_safe_year_suffix(year) == expected


class TestScoreToLetter:
    @pytest.mark.parametrize("score, letter", [
        (Decimal("92"), "A"),
        (80, "A"),
        (79.99, "B"),
        (65, "C"),
        (50, "D"),
        (49.5, "E"),
        (None, ""),
    ])
    def test_letter(self, score, letter) -> None:
        assert score_to_letter(score) == letter


@pytest.mark.django_db
class TestStudentRecords:
    def test_admission_numbers_are_sequential_per_year(self, make_student, grade1_class) -> None:
        first = make_student(grade1_class, admission_date=date(2025, 1, 6))
        second = make_student(grade1_class, admission_date=date(2025, 2, 3))
        later = make_student(grade1_class, admission_date=date(2026, 1, 5))

        assert first.admission_number == "25/GREENFIE/0001"
        assert second.admission_number == "25/GREENFIE/0002"
        assert later.admission_number == "26/GREENFIE/0001"

    def test_joined_period_defaults_to_class_year(self, student) -> None:
        assert student.joined_academic_year == "2025"
        assert student.joined_term == "Term 1"

    def test_list_students_filters(self, school, student, make_student, grade1_class, grade6_class) -> None:
        make_student(grade6_class, first_name="Brian")
        make_student(grade1_class, status=Student.STATUS_WITHDRAWN)

        assert StudentService.list_students(school).count() == 2
        assert StudentService.list_students(school, status="all").count() == 3
        assert [s.first_name for s in StudentService.list_students(school, grade="grade 6")] == ["Brian"]
        assert StudentService.list_students(school, class_id=grade1_class.pk).count() == 1

    def test_other_school_students_are_invisible(self, school, other_school, student) -> None:
        assert StudentService.get_student(other_school, student.pk) is None
        assert StudentService.list_students(other_school).count() == 0


@pytest.mark.django_db
class TestAlumni:
    @pytest.fixture
    def alumni(self, school, make_student, grade6_class):
        records = []
        for year, grade in (("2023", "A"), ("2024", "B"), ("2024", "A")):
            leaver = make_student(grade6_class, status=Student.STATUS_GRADUATED)
            records.append(Alumni.all_objects.create(
                school=school, student=leaver, graduation_year=year, final_class="Grade 6A", final_grade=grade,
            ))
        return records

    def test_statistics(self, school, alumni) -> None:
        stats = AlumniService.get_statistics(school)

        assert stats["total_alumni"] == 3
        assert stats["total_years"] == 2
        assert stats["top_performers"] == 2

    def test_group_by_year_newest_first(self, school, alumni) -> None:
        groups = AlumniService.group_by_year(school)

        assert list(groups) == ["2024", "2023"]
        assert len(groups["2024"]) == 2

    def test_list_filters_by_year(self, school, alumni) -> None:
        assert AlumniService.list_alumni(school, year=2023).count() == 1

    def test_api(self, admin_client, api, alumni) -> None:
        response = admin_client.get(api("alumni/statistics/"))
        assert response.status_code == 200
        assert response.json()["data"]["total_alumni"] == 3

        grouped = admin_client.get(api("alumni/"), {"group": "year"}).json()["data"]
        assert [group["year"] for group in grouped] == ["2024", "2023"]


# =============================================================================
# INTAKE
# =============================================================================

class TestSplitFullName:
    @pytest.mark.parametrize("name, parts", [
        ("Amina Otieno", ("Amina", "", "Otieno")),
        ("Amina Wanjiku Otieno", ("Amina", "Wanjiku", "Otieno")),
        ("  Amina  ", ("Amina", "", "")),
        ("", ("", "", "")),
    ])
    def test_split(self, name, parts) -> None:
        assert split_full_name(name) == parts


def test_import_template_headers() -> None:
    wb = build_student_template()

    assert [cell.value for cell in wb["Students"][1]] == TEMPLATE_HEADERS
    assert "Instructions" in wb.sheetnames


@pytest.mark.django_db
class TestStudentForm:
    def test_requires_names_and_class(self, school, grades) -> None:
        form = StudentForm({"first_name": "Brian"}, school=school)

        assert not form.is_valid()
        assert form.errors["last_name"] == ["Last name is required."]
        assert form.errors["class_id"] == ["A class is required."]

    def test_class_by_grade_name(self, school, grade1_class) -> None:
        form = StudentForm({"name": "Brian Kamau", "class_name": "grade 1", "gender": "male"}, school=school)

        assert form.is_valid(), form.errors
        assert form.cleaned_data["school_class"] == grade1_class
        assert form.cleaned_data["gender"] == "M"
        assert (form.cleaned_data["first_name"], form.cleaned_data["last_name"]) == ("Brian", "Kamau")

    def test_unknown_class(self, school, grade1_class) -> None:
        form = StudentForm({"name": "Brian Kamau", "class_name": "Form 4"}, school=school)

        assert not form.is_valid()
        assert form.errors["class_name"] == ["Class 'Form 4' not found."]

    def test_admission_number_in_use(self, school, student, grade1_class) -> None:
        form = StudentForm(
            {"name": "Brian Kamau", "class_name": "Grade 1A", "admission_number": student.admission_number.lower()},
            school=school,
        )

        assert not form.is_valid()
        assert "admission_number" in form.errors

    def test_update_makes_fields_optional(self, school, student) -> None:
        form = StudentForm({"gender": "F"}, school=school, instance=student)

        assert form.is_valid(), form.errors
        assert form.submitted_fields == ["gender"]


@pytest.mark.django_db
class TestStudentIntake:
    def test_admission_links_existing_parent_by_phone(self, school, grade1_class, parent_user) -> None:
        form = StudentForm(
            {"name": "Brian Otieno", "class_name": "Grade 1A", "parent_phone": "+254711111111"},
            school=school,
        )
        assert form.is_valid(), form.errors

        result = StudentService.create_student(school, form.cleaned_data)

        student = result["student"]
        assert ADMISSION_NUMBER.match(student.admission_number)
        assert student.parent == parent_user.parent_record
        assert result["parent_login"] is None
        assert Student.all_objects.filter(school=school, parent=student.parent).count() == 2

        login = result["login"]
        assert login["username"] == "greenfield_" + re.sub(r"[^0-9a-z]", "", student.admission_number.lower())
        assert login["user"].check_password(login["password"])
        assert login["user"].profile.role == UserProfile.ROLE_STUDENT
        assert student.user == login["user"]

    def test_admission_creates_parent_with_login(self, school, grade1_class) -> None:
        form = StudentForm(
            {
                "name": "Brian Kamau",
                "class_name": "Grade 1A",
                "email": "Brian.Kamau@example.com",
                "parent_name": "Jane Wanjiru Kamau",
                "parent_phone": "+254722000001",
            },
            school=school,
        )
        assert form.is_valid(), form.errors

        result = StudentService.create_student(school, form.cleaned_data)

        parent = result["parent"]
        assert (parent.first_name, parent.last_name) == ("Jane Wanjiru", "Kamau")
        assert result["parent_login"]["username"] == "greenfield_254722000001"
        assert parent.user.profile.role == UserProfile.ROLE_PARENT
        assert result["login"]["username"] == "brian.kamau@example.com"

    def test_admission_without_login(self, school, grade1_class) -> None:
        form = StudentForm({"name": "Brian Kamau", "class_name": "Grade 1A", "create_login": False}, school=school)
        assert form.is_valid(), form.errors

        result = StudentService.create_student(school, form.cleaned_data)

        assert result["login"] is None
        assert result["student"].user is None

    def test_partial_update(self, school, student, grade6_class) -> None:
        form = StudentForm({"class_id": str(grade6_class.pk), "average_score": "72.5"}, school=school, instance=student)
        assert form.is_valid(), form.errors

        StudentService.update_student(student, form.cleaned_data, form.submitted_fields)

        student.refresh_from_db()
        assert student.current_class == grade6_class
        assert student.average_score == Decimal("72.50")
        assert student.get_full_name() == "Amina Otieno"

    def test_withdrawal_deactivates_login(self, student, student_user) -> None:
        StudentService.withdraw_student(student)

        student.refresh_from_db()
        student_user.refresh_from_db()
        assert student.status == Student.STATUS_WITHDRAWN
        assert not student_user.is_active

    def test_bulk_create_reports_rows(self, school, grade1_class) -> None:
        results = StudentService.bulk_create(school, enumerate([
            {"name": "Brian Kamau", "className": "Grade 1A"},
            {"firstName": "Zawadi", "lastName": "Njeri"},
            "not a row",
        ], start=1))

        assert results["created"] == 1
        assert results["students"][0]["row"] == 1
        assert [error["row"] for error in results["errors"]] == [2, 3]
        assert "A class is required." in results["errors"][0]["error"]

    def test_workbook_import(self, school, grade1_class) -> None:
        upload = workbook_upload([
            ["Admission Number", "First Name", "Last Name", "Gender", "Date of Birth", "Class", "Parent Phone"],
            [None, "Brian", "Kamau", "M", date(2018, 5, 2), "Grade 1", 254722000001],
            [None, "Zawadi", "Njeri", "X", None, "Grade 1", None],
        ])

        results = StudentService.import_from_workbook(school, upload)

        assert results["created"] == 1
        assert results["errors"] == [{"row": 3, "error": "Gender: Gender must be M or F."}]
        brian = Student.all_objects.get(school=school, first_name="Brian")
        assert brian.date_of_birth == date(2018, 5, 2)
        assert brian.parent.phone == "254722000001"


@pytest.mark.django_db
class TestParentService:
    def test_create_and_find(self, school) -> None:
        parent, login = ParentService.create_parent(school, "John", "Mwangi", phone="+254733000000")

        assert login["username"] == "greenfield_254733000000"
        assert ParentService.find_parent(school, phone="+254733000000") == parent
        assert ParentService.find_parent(school, email="nobody@example.com") is None

    def test_resolve_reuses_parent(self, school) -> None:
        first, _, created = ParentService.resolve_parent(school, name="Jane Kamau", email="JANE@example.com")
        again, login, created_again = ParentService.resolve_parent(school, name="Jane K", email="jane@example.com")

        assert created and not created_again
        assert again == first
        assert login is None

    def test_update_syncs_login(self, school, parent_user) -> None:
        parent = parent_user.parent_record
        ParentService.update_parent(parent, last_name="Achieng", email="mary@example.com")

        parent_user.refresh_from_db()
        assert parent_user.last_name == "Achieng"
        assert parent_user.email == "mary@example.com"


@pytest.mark.django_db
class TestIntakeEndpoints:
    def test_admit_student(self, admin_client, api, grade1_class) -> None:
        response = admin_client.post(
            api("students/"),
            {"name": "Brian Kamau", "className": "Grade 1A", "gender": "M",
             "parentName": "Jane Kamau", "parentPhone": "+254722000001"},
            content_type="application/json",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Student admitted"
        data = body["data"]
        assert ADMISSION_NUMBER.match(data["admission_number"])
        assert data["class"] == "Grade 1A"
        assert data["parent"]["phone"] == "+254722000001"
        assert data["login"]["username"].startswith("greenfield_")
        assert data["parent_login"]["username"] == "greenfield_254722000001"

    def test_teacher_cannot_admit(self, teacher_client, api, grade1_class) -> None:
        response = teacher_client.post(
            api("students/"), {"name": "Brian Kamau", "className": "Grade 1A"}, content_type="application/json"
        )
        assert response.status_code == 403

    def test_admission_needs_class(self, admin_client, api, grades) -> None:
        response = admin_client.post(api("students/"), {"name": "Brian Kamau"}, content_type="application/json")

        assert response.status_code == 400
        assert "class_id" in response.json()["errors"]

    def test_patch_student(self, admin_client, api, student, grade6_class) -> None:
        response = admin_client.patch(
            api(f"students/{student.pk}/"),
            {"classId": str(grade6_class.pk), "disciplinaryCases": 2},
            content_type="application/json",
        )

        assert response.status_code == 200
        assert response.json()["data"]["class"] == "Grade 6A"
        student.refresh_from_db()
        assert student.disciplinary_cases == 2

    def test_delete_withdraws(self, admin_client, api, student) -> None:
        response = admin_client.delete(api(f"students/{student.pk}/"))

        assert response.status_code == 200
        assert response.json()["data"]["status"] == Student.STATUS_WITHDRAWN
        assert Student.all_objects.filter(pk=student.pk).exists()
        assert admin_client.get(api("students/")).json()["pagination"]["total"] == 0

    def test_bulk(self, admin_client, api, grade1_class) -> None:
        response = admin_client.post(
            api("students/bulk/"),
            {"students": [{"name": "Brian Kamau", "className": "Grade 1A"}, {"name": "Solo"}]},
            content_type="application/json",
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["created"] == 1
        assert [error["row"] for error in data["errors"]] == [2]

    def test_bulk_needs_rows(self, admin_client, api) -> None:
        response = admin_client.post(api("students/bulk/"), {"students": []}, content_type="application/json")
        assert response.status_code == 400

    def test_import(self, admin_client, api, grade1_class) -> None:
        upload = workbook_upload([
            ["Name", "Class"],
            ["Brian Kamau", "Grade 1A"],
            ["Zawadi Njeri", "Grade 9"],
        ])

        response = admin_client.post(api("students/import/"), {"file": upload})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["created"] == 1
        assert data["errors"][0]["row"] == 3

    def test_import_rejects_other_files(self, admin_client, api) -> None:
        upload = SimpleUploadedFile("students.csv", b"Name,Class\n")
        assert admin_client.post(api("students/import/"), {"file": upload}).status_code == 400

    def test_import_template(self, admin_client, api) -> None:
        response = admin_client.get(api("students/import/template/"))

        assert response.status_code == 200
        assert response.content.startswith(b"PK")

    def test_parents(self, admin_client, teacher_client, api, parent_user) -> None:
        listing = teacher_client.get(api("parents/"), {"search": "otieno"}).json()
        assert listing["pagination"]["total"] == 1
        assert listing["data"][0]["children_count"] == 1

        response = admin_client.post(
            api("parents/"), {"name": "John Mwangi", "phone": "+254733000000"}, content_type="application/json"
        )
        assert response.status_code == 201
        assert response.json()["data"]["login"]["username"] == "greenfield_254733000000"

        duplicate = admin_client.post(
            api("parents/"), {"name": "Johnny Mwangi", "phone": "+254733000000"}, content_type="application/json"
        )
        assert duplicate.status_code == 400
        assert "phone" in duplicate.json()["errors"]

    def test_teacher_cannot_add_parent(self, teacher_client, api) -> None:
        response = teacher_client.post(
            api("parents/"), {"name": "John Mwangi", "phone": "+254733000000"}, content_type="application/json"
        )
        assert response.status_code == 403

    def test_parent_detail_and_update(self, admin_client, api, parent_user) -> None:
        parent = parent_user.parent_record
        url = api(f"parents/{parent.pk}/")

        data = admin_client.get(url).json()["data"]
        assert [child["name"] for child in data["children"]] == ["Amina Otieno"]

        response = admin_client.patch(url, {"email": "MARY@example.com"}, content_type="application/json")
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "mary@example.com"
        assert response.json()["data"]["first_name"] == "Mary"
