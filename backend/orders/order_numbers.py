"""
Order number generation from the store's order id format
"""
import random
from datetime import datetime, time

from django.utils import timezone

from backend.core.models import StoreSettings, default_order_id_format

DATE_FORMATS = {
    'YYYYMMDD': '%Y%m%d',
    'YYMMDD': '%y%m%d',
    'DDMMYYYY': '%d%m%Y',
    'DDMMYY': '%d%m%y',
    'YYYYMM': '%Y%m',
    'YYMM': '%y%m',
    'none': None,
}
NUMBER_FORMATS = ('sequential', 'random')
RESET_PERIODS = ('daily', 'monthly', 'yearly', 'never')
CASE_TRANSFORMS = ('uppercase', 'lowercase', 'none')


def validate_order_id_format(value):
    """Merge with defaults and validate; raises ValueError"""
    if not isinstance(value, dict):
        raise ValueError('Order id format must be an object')
    fmt = {**default_order_id_format(), **value}
    if fmt['dateFormat'] not in DATE_FORMATS:
        raise ValueError(f"dateFormat must be one of: {', '.join(DATE_FORMATS)}")
    if fmt['numberFormat'] not in NUMBER_FORMATS:
        raise ValueError(f"numberFormat must be one of: {', '.join(NUMBER_FORMATS)}")
    if fmt['resetPeriod'] not in RESET_PERIODS:
        raise ValueError(f"resetPeriod must be one of: {', '.join(RESET_PERIODS)}")
    if fmt['caseTransform'] not in CASE_TRANSFORMS:
        raise ValueError(f"caseTransform must be one of: {', '.join(CASE_TRANSFORMS)}")
    try:
        fmt['numberPadding'] = int(fmt['numberPadding'])
        fmt['startFrom'] = int(fmt['startFrom'])
    except (TypeError, ValueError):
        raise ValueError('numberPadding and startFrom must be integers')
    if not 1 <= fmt['numberPadding'] <= 10:
        raise ValueError('numberPadding must be between 1 and 10')
    if fmt['startFrom'] < 0:
        raise ValueError('startFrom cannot be negative')
    if len(str(fmt['prefix'] or '')) > 10 or len(str(fmt['separator'] or '')) > 3:
        raise ValueError('prefix or separator is too long')
    return fmt


def _apply_case(value, case_transform):
    if case_transform == 'uppercase':
        return value.upper()
    if case_transform == 'lowercase':
        return value.lower()
    return value


def _period_start(now, reset_period):
    local = timezone.localtime(now)
    if reset_period == 'daily':
        start = local.date()
    elif reset_period == 'monthly':
        start = local.date().replace(day=1)
    elif reset_period == 'yearly':
        start = local.date().replace(month=1, day=1)
    else:
        return None
    return timezone.make_aware(datetime.combine(start, time.min))


def generate_order_number(fmt=None, now=None):
    """
    Build the next order number, e.g. GS-20250101-0001.

    Sequential numbers continue from the highest number issued in the
    current reset period; random numbers are retried until unused.
    """
    from .models import Order

    fmt = validate_order_id_format(fmt if fmt is not None else StoreSettings.load().order_id_format)
    now = now or timezone.now()
    prefix = str(fmt['prefix'] or '')
    separator = str(fmt['separator'] or '')
    padding = fmt['numberPadding']

    date_pattern = DATE_FORMATS[fmt['dateFormat']]
    date_str = timezone.localtime(now).strftime(date_pattern) if date_pattern else ''
    head = f"{prefix}{separator}{date_str}{separator}" if date_str else f"{prefix}{separator}"
    head = _apply_case(head, fmt['caseTransform'])

    if fmt['numberFormat'] == 'random':
        upper = 10 ** padding - 1
        for _ in range(10):
            candidate = f"{head}{random.randint(0, upper):0{padding}d}"
            if not Order.objects.filter(order_no=candidate).exists():
                return candidate
        # Number space is crowded, fall back to a time based suffix
        return f"{head}{str(int(now.timestamp() * 1000))[-padding:]:0>{padding}}"

    queryset = Order.objects.filter(order_no__startswith=head)
    period_start = _period_start(now, fmt['resetPeriod'])
    if period_start is not None:
        queryset = queryset.filter(created_at__gte=period_start)
    last_number = None
    for order_no in queryset.values_list('order_no', flat=True):
        suffix = order_no[len(head):]
        if suffix.isdigit():
            last_number = max(last_number or 0, int(suffix))
    sequence = fmt['startFrom'] if last_number is None else max(last_number + 1, fmt['startFrom'])
    return f"{head}{sequence:0{padding}d}"
