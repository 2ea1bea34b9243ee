# promotions/views.py

"""
Promotion endpoints.

JSON (single endpoint, dispatched on ``action``):
    GET  promotions/?action=eligible-students|criteria|progression|history
    POST promotions/  {"action": "execute"|"update-criteria"|"preview", ...}

HTML:
    promotions/wizard/   select -> review -> confirm, then the completion page
"""

from django.core.exceptions import ValidationError
from django.shortcuts import render
from django.utils.decorators import method_decorator
from django.views.decorators.http import require_http_methods
from formtools.wizard.views import SessionWizardView
import logging

from academics.models import AcademicYear
from academics.services import GradeService
from accounts.decorators import role_required
from accounts.models import UserProfile
from students.models import Student
from utils.forms import get_form_errors_as_dict
from utils.utils import parse_json_body, snake_case_keys, json_success, json_error

from .forms import (
    PromotionCriteriaForm, PromotionExecuteForm,
    PROMOTION_WIZARD_FORMS, PROMOTION_WIZARD_STEP_NAMES,
)
from .services import (
    PromotionCriteriaService, EligibilityService, PromotionService,
    serialize_criteria, serialize_log,
)

logger = logging.getLogger(__name__)

ADMIN_ROLES = (UserProfile.ROLE_ADMIN,)


# =============================================================================
# JSON ENDPOINT
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*ADMIN_ROLES)
def promotions(request, school_code):
    if request.method == 'GET':
        return _promotions_get(request, request.GET.get('action') or 'eligible-students')

    try:
        data = snake_case_keys(parse_json_body(request))
    except ValueError as e:
        return json_error(str(e))

    action = data.pop('action', None) or request.GET.get('action')
    handlers = {
        'execute': _execute,
        'preview': _preview,
        'update-criteria': _update_criteria,
    }
    handler = handlers.get(action)
    if handler is None:
        return json_error(f"Invalid action: {action}")

    try:
        return handler(request, data)
    except ValidationError as e:
        return json_error(e.messages[0])


def _promotions_get(request, action):
    school = request.school

    if action == 'criteria':
        return json_success(serialize_criteria(PromotionCriteriaService.get_config(school)))

    if action == 'progression':
        return json_success(GradeService.get_progression(school))

    if action == 'history':
        student = None
        student_id = request.GET.get('studentId')
        if student_id:
            try:
                student = Student.all_objects.filter(school=school, pk=student_id).first()
            except ValidationError:
                student = None
            if student is None:
                return json_error('Student not found', status=404)

        logs = PromotionService.history(school, academic_year=request.GET.get('academicYear'), student=student)
        return json_success([serialize_log(log) for log in logs])

    if action == 'eligible-students':
        academic_year = None
        year_name = request.GET.get('academicYear')
        if year_name:
            academic_year = AcademicYear.all_objects.filter(school=school, name=year_name).first()
            if academic_year is None:
                return json_error('Academic year not found', status=404)

        criteria = PromotionCriteriaService.get_config(school)
        students = EligibilityService.eligible_students(school, criteria, academic_year=academic_year)
        eligible = sum(1 for student in students if student['is_eligible'])
        return json_success({
            'criteria': serialize_criteria(criteria),
            'students': students,
            'summary': {
                'total': len(students),
                'eligible': eligible,
                'ineligible': len(students) - eligible,
            },
        })

    return json_error(f"Invalid action: {action}")


def _execute(request, data):
    form = PromotionExecuteForm(data)
    if not form.is_valid():
        return json_error('Invalid promotion request', errors=get_form_errors_as_dict(form))

    school = request.school
    cleaned = form.cleaned_data

    excluded_ids = {item['student_id'] for item in cleaned.get('exclusions') or []}
    promotion_list = PromotionService.build_promotion_list(
        school, [pk for pk in cleaned['student_ids'] if str(pk) not in excluded_ids]
    )
    errors = PromotionService.validate_targets(school, promotion_list)
    if errors:
        return json_error('Promotion targets are invalid', errors={'targets': errors})

    criteria = PromotionCriteriaService.get_config(school) if cleaned.get('apply_criteria') else None
    result = PromotionService.execute(
        school,
        cleaned['student_ids'],
        promoted_by=request.user,
        criteria=criteria,
        exclusions=cleaned.get('exclusions'),
        notes=cleaned.get('notes') or '',
    )
    return json_success(result, message=result['message'])


def _preview(request, data):
    form = PromotionExecuteForm(data)
    if not form.is_valid():
        return json_error('Invalid promotion request', errors=get_form_errors_as_dict(form))

    school = request.school
    promotion_list = PromotionService.build_promotion_list(school, form.cleaned_data['student_ids'])

    if form.cleaned_data.get('apply_criteria'):
        criteria = PromotionCriteriaService.get_config(school)
        students = {
            str(student.pk): student
            for student in Student.all_objects.filter(school=school, pk__in=form.cleaned_data['student_ids'])
        }
        for entry in promotion_list:
            student = students.get(entry['student_id'])
            if student is not None:
                entry['eligibility'] = EligibilityService.evaluate(student, criteria)

    return json_success({
        'promotions': promotion_list,
        'errors': PromotionService.validate_targets(school, promotion_list),
    })


def _update_criteria(request, data):
    form = PromotionCriteriaForm(data)
    if not form.is_valid():
        return json_error('Invalid criteria', errors=get_form_errors_as_dict(form))

    cleaned = form.cleaned_data
    criteria = PromotionCriteriaService.update_config(
        request.school,
        min_grade=cleaned.get('min_grade'),
        max_fee_balance=cleaned.get('max_fee_balance'),
        max_disciplinary_cases=cleaned.get('max_disciplinary_cases'),
        name=cleaned.get('name') or None,
        description=cleaned.get('description') if 'description' in data else None,
    )
    return json_success(serialize_criteria(criteria), message='Promotion criteria updated')


# =============================================================================
# PROMOTION WIZARD
# =============================================================================

@method_decorator(role_required(*ADMIN_ROLES), name='dispatch')
class PromotionWizard(SessionWizardView):
    """
    Multi-step promotion wizard.

    Steps:
    1. Select - academic year and students
    2. Review - destination of each student, optional exclusions
    3. Confirm - confirmation and notes

    ``done`` executes the promotion and renders the completion page.
    """

    form_list = PROMOTION_WIZARD_FORMS
    template_name = 'promotions/wizard.html'

    def get_template_names(self):
        return [self.template_name]

    def _selected_ids(self):
        selected = self.get_cleaned_data_for_step('select') or {}
        return [str(student.pk) for student in selected.get('students', [])]

    def get_form_kwargs(self, step=None):
        kwargs = super().get_form_kwargs(step)
        if step in ('select', 'review'):
            kwargs['school'] = self.request.school
        if step == 'review':
            kwargs['selected_ids'] = self._selected_ids()
        return kwargs

    def get_context_data(self, form, **kwargs):
        context = super().get_context_data(form=form, **kwargs)

        total_steps = len(self.form_list)
        current_step_index = list(self.form_list).index(self.steps.current)

        context.update({
            'school': self.request.school,
            'step_names': PROMOTION_WIZARD_STEP_NAMES,
            'current_step_name': PROMOTION_WIZARD_STEP_NAMES.get(self.steps.current, 'Step'),
            'progress_percentage': (current_step_index / (total_steps - 1)) * 100 if total_steps > 1 else 100,
        })

        if self.steps.current in ('review', 'confirm'):
            school = self.request.school
            promotion_list = PromotionService.build_promotion_list(school, self._selected_ids())
            context['promotion_list'] = promotion_list
            context['target_errors'] = PromotionService.validate_targets(school, promotion_list)

        if self.steps.current == 'confirm':
            review = self.get_cleaned_data_for_step('review') or {}
            context['excluded_students'] = review.get('excluded_students', [])
            context['apply_criteria'] = (self.get_cleaned_data_for_step('select') or {}).get('apply_criteria')

        return context

    def done(self, form_list, **kwargs):
        school = self.request.school
        form_data = {}
        for form in form_list:
            form_data.update(form.cleaned_data)

        student_ids = [str(student.pk) for student in form_data['students']]
        reason = form_data.get('exclusion_reason') or 'Excluded by administrator'
        exclusions = {str(student.pk): reason for student in form_data.get('excluded_students') or []}
        criteria = PromotionCriteriaService.get_config(school) if form_data.get('apply_criteria') else None

        logger.info(f"Promotion wizard completed by {self.request.user.username} for {len(student_ids)} students")

        result = PromotionService.execute(
            school,
            student_ids,
            promoted_by=self.request.user,
            criteria=criteria,
            exclusions=exclusions,
            notes=form_data.get('notes') or '',
        )
        return render(self.request, 'promotions/complete.html', {
            'school': school,
            'result': result,
        })


promotion_wizard = PromotionWizard.as_view()
