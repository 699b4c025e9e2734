"""
Core utilities: organization scoping, money/hours quantization.
"""
from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANTUM = Decimal('0.01')
HOURS_QUANTUM = Decimal('0.0001')


def to_money(value):
    """Coerce int/float/str/Decimal to a Decimal rounded to 2 places."""
    if value is None:
        return Decimal('0.00')
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def minutes_to_hours(duration_minutes):
    """90 -> Decimal('1.5000'). Same input always yields the same quantized value."""
    return (Decimal(int(duration_minutes)) / Decimal(60)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def _user_org(user):
    return getattr(user, 'organization', None) or getattr(user, 'organization_id', None)


def user_organization_id(user):
    org = _user_org(user)
    return getattr(org, 'pk', org)


def belongs_to_user_organization(obj, user, org_attr='organization'):
    """
    Check if object belongs to user's organization.
    Returns True in single-tenant mode or when the user has no org.
    """
    from django.conf import settings
    if getattr(settings, 'SINGLE_TENANT', False):
        return True
    user_org_id = user_organization_id(user)
    if user_org_id is None:
        return True
    obj_org = getattr(obj, org_attr, None)
    obj_org_id = getattr(obj_org, 'pk', obj_org)
    return obj_org_id == user_org_id


def filter_by_organization(queryset, user, org_field='organization'):
    """
    Filter queryset by user's organization.
    Single-tenant mode (SINGLE_TENANT=True): return all, no filter.
    """
    from django.conf import settings
    if getattr(settings, 'SINGLE_TENANT', False):
        return queryset
    org_id = user_organization_id(user)
    if org_id is None:
        return queryset.none()
    return queryset.filter(**{f'{org_field}_id': org_id})
