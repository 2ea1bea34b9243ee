# utils/forms.py

"""
Shared form pieces.

API payloads are validated with ordinary Django forms so the same rules
apply to JSON endpoints, the admin and the promotion wizard.
"""

from django import forms
from django.core.exceptions import ValidationError
from decimal import Decimal, InvalidOperation
import re
import logging

logger = logging.getLogger(__name__)


class MoneyField(forms.DecimalField):
    """Money amount accepting '12,500', 'KES 12500' and plain numbers"""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('max_digits', 15)
        kwargs.setdefault('decimal_places', 2)
        super().__init__(*args, **kwargs)

    def to_python(self, value):
        if isinstance(value, str) and value not in self.empty_values:
            value = re.sub(r'[^\d.-]', '', value)
            try:
                Decimal(value)
            except (ValueError, InvalidOperation):
                raise ValidationError('Enter a valid amount.', code='invalid')
        return super().to_python(value)


class BootstrapFormMixin:
    """Add Bootstrap classes to form widgets"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            widget = field.widget
            if isinstance(widget, (forms.CheckboxInput, forms.RadioSelect, forms.CheckboxSelectMultiple)):
                css_class = 'form-check-input'
            elif isinstance(widget, forms.Select):
                css_class = 'form-select'
            else:
                css_class = 'form-control'

            existing = widget.attrs.get('class', '')
            if css_class not in existing:
                widget.attrs['class'] = f"{existing} {css_class}".strip()


def validate_positive_amount(value):
    """Validate that amount is positive"""
    if value is not None and value <= 0:
        raise ValidationError('Amount must be greater than zero.')


def get_form_errors_as_dict(form):
    """Convert form errors to a dictionary for JSON responses"""
    return {
        field: [str(error) for error in error_list]
        for field, error_list in form.errors.items()
    }


def get_form_errors_as_string(form, separator='; '):
    """Convert form errors to a single line, e.g. for per-row import errors"""
    error_messages = []

    for field, error_list in form.errors.items():
        field_label = form.fields[field].label if field in form.fields else None
        for error in error_list:
            error_messages.append(f"{field_label}: {error}" if field_label else str(error))

    return separator.join(error_messages)
