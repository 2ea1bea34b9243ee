# core/management/commands/seed_school.py
"""
Seed a school
=============

Creates a ready-to-use school:
- the School itself
- an administrator and a bursar login
- the current academic year with Term 1..3 (Term 1 current)
- Grade 1..6 and Alumni with their progression
- one class per grade
- default fee structures for every grade and term

Usage:
    python manage.py seed_school greenfield --name "Greenfield Academy" --password secret
"""

from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model
from django.db import transaction
import logging

from accounts.models import School, UserProfile
from academics.models import current_year_name
from academics.services import AcademicYearService, GradeService, ClassService
from edusms.managers import SchoolContext
from fees.services import FeeStructureService, get_default_fee_breakdown

logger = logging.getLogger(__name__)

User = get_user_model()


class Command(BaseCommand):
    help = "Create a school with its admin/bursar accounts, academic year, grades, classes and fee structures"

    def add_arguments(self, parser):
        parser.add_argument('code', help="School code used in portal URLs")
        parser.add_argument('--name', help="School name (defaults to the code)")
        parser.add_argument('--year', default=None, help="Academic year name (defaults to this calendar year)")
        parser.add_argument('--currency', default='KES', help="ISO 4217 currency code")
        parser.add_argument('--password', default='changeme123', help="Password for the seeded accounts")

    def handle(self, *args, **options):
        code = options['code'].strip().lower()
        year_name = options['year'] or current_year_name()

        if School.objects.filter(code=code).exists():
            raise CommandError(f"School '{code}' already exists")

        self.stdout.write(self.style.WARNING(f"Seeding school {code}..."))

        with transaction.atomic():
            school = School.objects.create(
                code=code,
                name=options['name'] or code.title(),
                currency=options['currency'].upper(),
                status=School.STATUS_ACTIVE,
            )

            with SchoolContext(school):
                self._create_user(school, f"{code}_admin", UserProfile.ROLE_ADMIN, options['password'])
                self._create_user(school, f"{code}_bursar", UserProfile.ROLE_BURSAR, options['password'])

                year = AcademicYearService.create_year_with_terms(school, year_name, make_current=True)
                first_term = year.terms.order_by('order').first()
                first_term.is_current = True
                first_term.save()
                self.stdout.write(f"  Created academic year {year.name} with {year.terms.count()} terms")

                grades = GradeService.seed_default_grades(school)
                structures = 0
                for grade in grades:
                    if grade.is_alumni:
                        continue
                    ClassService.find_or_create_class(school, grade, year)
                    breakdown = get_default_fee_breakdown(grade.name)
                    for term in year.terms.order_by('order'):
                        FeeStructureService.save_structure(
                            school, grade, year.name, term.name,
                            breakdown=breakdown,
                            is_released=True,
                        )
                        structures += 1
                self.stdout.write(f"  Created {len(grades)} grades and {structures} fee structures")

        logger.info(f"Seeded school {school.code}")
        self.stdout.write(self.style.SUCCESS(f"School '{school.name}' ({school.code}) is ready"))

    def _create_user(self, school, username, role, password):
        user = User.objects.create_user(
            username=username,
            email=f"{username}@{school.code}.example.com",
            password=password,
        )
        UserProfile.objects.create(user=user, school=school, role=role)
        self.stdout.write(f"  Created {role.lower()} account: {username}")
        return user
