"""Payload validation shared by admin and client routes.

Validators raise ValidationError (a ValueError), which
safe_error_response() turns into a 400 with the message exposed.
"""
from datetime import date

# Closed status / priority vocabularies
PROSPECT_STATUSES = ('nouveau', 'contacte', 'qualifie', 'negocie', 'converti', 'perdu', 'archive')
INACTIVE_PROSPECT_STATUSES = ('converti', 'perdu', 'archive')
PROSPECT_REQUEST_TYPES = (
    'landing_framer', 'site_multipage_framer', 'refonte_framer',
    'integration_design_framer', 'ux_ui_figma', 'formation_framer',
    'partenariats', 'autres', 'site', 'formation', 'partenariat', 'autre',
)
PROJECT_STATUSES = ('en_attente', 'en_cours', 'en_revision', 'termine', 'suspendu')
MILESTONE_STATUSES = ('a_faire', 'en_cours', 'termine')
TASK_STATUSES = ('a_faire', 'en_cours', 'termine')
PRIORITIES = ('basse', 'moyenne', 'haute')
TICKET_STATUSES = ('ouvert', 'en_cours', 'resolu', 'ferme')
AUTHORS = ('admin', 'client')


class ValidationError(ValueError):
    """Invalid request payload."""


def require_fields(data, *fields):
    """Raise unless every field is present and non-blank."""
    missing = [f for f in fields if data.get(f) in (None, '') or
               (isinstance(data.get(f), str) and not data[f].strip())]
    if missing:
        raise ValidationError(f'Missing required fields: {", ".join(missing)}')


def check_choice(value, choices, field):
    if value not in choices:
        raise ValidationError(f'Invalid {field}: {value!r}. Must be one of: {", ".join(choices)}')
    return value


def check_optional_choice(data, field, choices):
    """Validate data[field] against choices only when it is supplied."""
    if field in data and data[field] is not None:
        check_choice(data[field], choices, field)


def parse_date(value, field):
    """Parse an ISO date (YYYY-MM-DD). None/'' pass through as None."""
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'Invalid date for {field}: {value!r}')


def parse_int(value, field, minimum=None, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')
    if minimum is not None and number < minimum:
        raise ValidationError(f'{field} must be >= {minimum}')
    if maximum is not None and number > maximum:
        raise ValidationError(f'{field} must be <= {maximum}')
    return number


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')
