"""
MHD (best-before date) task engine

The daily worklist is derived from product expiry dates, the expiry settings
and the append-only ExpiryAction log:

- critical window: today <= expiry <= today + criticalDays  -> remove from shelf
- warning window:  today + criticalDays < expiry <= today + warningDays -> reduce price label

Products that are past their date, have no date or are excluded from the check
never enter a window.
"""
import logging
import re
from collections import defaultdict
from datetime import date, datetime, time, timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Prefetch
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from backend.core.exceptions import ValidationError, NotFoundError
from backend.core.models import StoreSettings, default_expiry_management_settings
from backend.catalog.models import Product
from .models import ExpiryAction, ExpiryNotificationRun

logger = logging.getLogger(__name__)

TASK_REMOVE = 'aussortieren'
TASK_LABEL = 'reduzieren'
BUCKET_REMOVE = 'removeToday'
BUCKET_LABEL = 'labelSoon'
TASK_LABELS = {TASK_REMOVE: 'Aussortieren', TASK_LABEL: 'Reduzieren'}
ACTION_LABELS = {
    'labeled': 'Reduziert',
    'removed': 'Aussortiert',
    'date_updated': 'MHD aktualisiert',
    'undone': 'Rückgängig gemacht',
}
NO_CATEGORY = 'Ohne Kategorie'
WEEKDAYS = ['Montag', 'Dienstag', 'Mittwoch', 'Donnerstag', 'Freitag', 'Samstag', 'Sonntag']

# Action types that count as work done on a product
WORK_ACTIONS = ('labeled', 'removed', 'date_updated')
DATE_ACTIONS = ('removed', 'date_updated')

DEADLINE_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')
HISTORY_DEFAULT_LIMIT = 100
HISTORY_MAX_LIMIT = 500


def get_today():
    return timezone.localdate()


def days_until_expiry(expiry_date, today):
    return (expiry_date - today).days


def format_date(value):
    return value.strftime('%d.%m.%Y') if value else ''


def parse_date_value(value, field='date'):
    """Accept a date, an ISO YYYY-MM-DD string or a full ISO datetime string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field} is required")
    try:
        text = str(value).strip()
        parsed = parse_date(text)
        if parsed is None:
            parsed_datetime = parse_datetime(text)
            parsed = parsed_datetime.date() if parsed_datetime else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"Invalid {field}: expected YYYY-MM-DD")
    return parsed


# Settings
def get_expiry_settings():
    stored = StoreSettings.load().expiry_management_settings or {}
    return {**default_expiry_management_settings(), **stored}


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def update_expiry_settings(data):
    """Validate and merge new expiry settings; unknown keys are ignored"""
    if not isinstance(data, dict):
        raise ValidationError('Settings must be an object')

    merged = get_expiry_settings()
    merged.update({key: data[key] for key in default_expiry_management_settings() if key in data})

    errors = {}
    if not isinstance(merged['enabled'], bool):
        errors['enabled'] = 'Must be true or false.'
    if not _is_int(merged['warningDays']) or merged['warningDays'] < 1:
        errors['warningDays'] = 'Must be an integer of at least 1.'
    if not _is_int(merged['criticalDays']) or merged['criticalDays'] < 0:
        errors['criticalDays'] = 'Must be an integer of at least 0.'
    elif 'warningDays' not in errors and merged['criticalDays'] > merged['warningDays']:
        errors['criticalDays'] = 'Must not be greater than warningDays.'
    if not isinstance(merged['processingDeadline'], str) or not DEADLINE_PATTERN.match(merged['processingDeadline']):
        errors['processingDeadline'] = 'Must be a time in HH:MM format.'
    if errors:
        raise ValidationError('Invalid expiry settings', details=errors)

    store_settings = StoreSettings.objects.get_or_create(pk=1)[0]
    store_settings.expiry_management_settings = merged
    store_settings.save()
    logger.info(f"Expiry settings updated: {merged}")
    return merged


def get_windows(today, expiry_settings):
    """Return (critical_end, warning_end) for a reference date"""
    critical_end = today + timedelta(days=expiry_settings['criticalDays'])
    warning_end = today + timedelta(days=expiry_settings['warningDays'])
    return critical_end, warning_end


# Candidate lists
def _candidate_queryset():
    active_actions = ExpiryAction.objects.filter(is_undone=False).select_related('admin').order_by('-created_at', '-id')
    return (
        Product.objects
        .filter(exclude_from_expiry_check=False, expiry_date__isnull=False)
        .select_related('category')
        .prefetch_related(Prefetch('expiry_actions', queryset=active_actions, to_attr='active_actions'))
    )


def _annotate(products, today):
    for product in products:
        product.days_until_expiry = days_until_expiry(product.expiry_date, today)
        product.last_action = product.active_actions[0] if product.active_actions else None
    return products


def get_critical_products(today=None):
    """Products due today (critical window) that still need to be taken off the shelf"""
    today = today or get_today()
    critical_end, _ = get_windows(today, get_expiry_settings())
    products = _candidate_queryset().filter(
        expiry_date__gte=today, expiry_date__lte=critical_end
    ).order_by('expiry_date', 'name')

    result = []
    for product in _annotate(list(products), today):
        if product.last_action and product.last_action.action_type in ('labeled', 'removed'):
            continue
        result.append(product)
    return result


def get_warning_products(today=None):
    """Products in the warning window; labeled ones stay in the list as processed"""
    today = today or get_today()
    critical_end, warning_end = get_windows(today, get_expiry_settings())
    products = _candidate_queryset().filter(
        expiry_date__gt=critical_end, expiry_date__lte=warning_end
    ).order_by('expiry_date', 'name')

    result = []
    for product in _annotate(list(products), today):
        if product.last_action and product.last_action.action_type == 'removed':
            continue
        result.append(product)
    return result


# Actions
def _get_product_for_update(product_id):
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise NotFoundError('Product not found')
    return product


def label_product(product_id, admin, note=None):
    """Record that a reduced-price label was put on the product"""
    with transaction.atomic():
        product = _get_product_for_update(product_id)
        if not product.expiry_date:
            raise ValidationError('Product has no expiry date')
        if product.exclude_from_expiry_check:
            raise ValidationError('Product is excluded from the expiry check')

        action = ExpiryAction.objects.create(
            product=product,
            admin=admin,
            action_type='labeled',
            expiry_date=product.expiry_date,
            previous_expiry_date=product.expiry_date,
            days_until_expiry=days_until_expiry(product.expiry_date, get_today()),
            note=note or '',
        )
    logger.info(f"Product {product.id} labeled by {admin}")
    return action


def remove_product(product_id, admin, exclude_from_check=False, note=None, new_expiry_date=None, context=None):
    """
    Record that the product was taken off the shelf.

    Optionally moves the expiry date (new stock with a later date) and/or
    excludes the product from further checks (e.g. out of stock).
    """
    new_date = parse_date_value(new_expiry_date, 'newExpiryDate') if new_expiry_date else None

    with transaction.atomic():
        product = _get_product_for_update(product_id)
        if not product.expiry_date:
            raise ValidationError('Product has no expiry date')

        previous_date = product.expiry_date
        update_fields = []
        if new_date:
            product.expiry_date = new_date
            update_fields.append('expiry_date')
        if exclude_from_check and not product.exclude_from_expiry_check:
            product.exclude_from_expiry_check = True
            update_fields.append('exclude_from_expiry_check')
        if update_fields:
            product.save(update_fields=update_fields + ['updated_at'])

        metadata = {key: value for key, value in (context or {}).items() if value not in (None, '')}
        action = ExpiryAction.objects.create(
            product=product,
            admin=admin,
            action_type='removed',
            expiry_date=product.expiry_date,
            previous_expiry_date=previous_date,
            days_until_expiry=days_until_expiry(product.expiry_date, get_today()),
            excluded_from_check=bool(exclude_from_check),
            note=note or '',
            metadata=metadata,
        )
    logger.info(f"Product {product.id} removed by {admin} (exclude={bool(exclude_from_check)}, new_date={new_date})")
    return action


def update_expiry_date(product_id, admin, new_expiry_date, note=None):
    """Set a new best-before date, e.g. after restocking"""
    new_date = parse_date_value(new_expiry_date, 'newExpiryDate')

    with transaction.atomic():
        product = _get_product_for_update(product_id)
        previous_date = product.expiry_date
        product.expiry_date = new_date
        product.save(update_fields=['expiry_date', 'updated_at'])

        action = ExpiryAction.objects.create(
            product=product,
            admin=admin,
            action_type='date_updated',
            expiry_date=new_date,
            previous_expiry_date=previous_date,
            days_until_expiry=days_until_expiry(new_date, get_today()),
            note=note or '',
        )
    logger.info(f"Product {product.id} expiry date {previous_date} -> {new_date} by {admin}")
    return action


def undo_action(action_id, admin):
    """
    Flag an action as undone and append an 'undone' entry linking to it.

    A removal that excluded the product re-enables the check; an action that
    moved the date restores the previous date if the product still carries
    the moved one.
    """
    with transaction.atomic():
        action = ExpiryAction.objects.select_for_update().filter(pk=action_id).first()
        if action is None:
            raise NotFoundError('Expiry action not found')
        if action.action_type == 'undone':
            raise ValidationError('An undo entry cannot be undone')
        if action.is_undone:
            raise ValidationError('Action has already been undone')

        product = _get_product_for_update(action.product_id)

        action.is_undone = True
        action.undone_at = timezone.now()
        action.undone_by = admin
        action.save(update_fields=['is_undone', 'undone_at', 'undone_by'])

        update_fields = []
        if action.action_type == 'removed' and action.excluded_from_check and product.exclude_from_expiry_check:
            product.exclude_from_expiry_check = False
            update_fields.append('exclude_from_expiry_check')

        restored_date = None
        if (action.action_type in DATE_ACTIONS and action.previous_expiry_date
                and action.previous_expiry_date != action.expiry_date
                and product.expiry_date == action.expiry_date):
            product.expiry_date = action.previous_expiry_date
            restored_date = action.previous_expiry_date
            update_fields.append('expiry_date')

        if update_fields:
            product.save(update_fields=update_fields + ['updated_at'])

        metadata = {'undoneActionType': action.action_type}
        if restored_date:
            metadata['restoredExpiryDate'] = restored_date.isoformat()
        undo_entry = ExpiryAction.objects.create(
            product=product,
            admin=admin,
            action_type='undone',
            expiry_date=product.expiry_date,
            previous_expiry_date=action.expiry_date,
            days_until_expiry=days_until_expiry(product.expiry_date, get_today()) if product.expiry_date else None,
            previous_action=action,
            note=f"Rückgängig gemacht: {ACTION_LABELS.get(action.action_type, action.action_type)}",
            metadata=metadata,
        )
    logger.info(f"Expiry action {action.id} ({action.action_type}) undone by {admin}")
    return undo_entry


def _int_param(value, default, name, maximum=None):
    if value in (None, ''):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if number < 0:
        raise ValidationError(f"{name} must not be negative")
    return min(number, maximum) if maximum else number


def get_action_history(filters=None):
    """Action log, newest first; filters: admin_id, product_id, action_type, date, limit, offset"""
    filters = filters or {}
    limit = _int_param(filters.get('limit'), HISTORY_DEFAULT_LIMIT, 'limit', HISTORY_MAX_LIMIT)
    offset = _int_param(filters.get('offset'), 0, 'offset')

    queryset = ExpiryAction.objects.select_related('product', 'admin', 'undone_by')
    if filters.get('admin_id'):
        queryset = queryset.filter(admin_id=_int_param(filters['admin_id'], None, 'adminId'))
    if filters.get('product_id'):
        queryset = queryset.filter(product_id=_int_param(filters['product_id'], None, 'productId'))
    if filters.get('action_type'):
        if filters['action_type'] not in dict(ExpiryAction.ACTION_TYPE_CHOICES):
            raise ValidationError(f"Unknown action type '{filters['action_type']}'")
        queryset = queryset.filter(action_type=filters['action_type'])
    if filters.get('date'):
        queryset = queryset.filter(created_at__date=parse_date_value(filters['date']))

    queryset = queryset.order_by('-created_at', '-id')
    return {
        'actions': list(queryset[offset:offset + limit]),
        'total': queryset.count(),
        'limit': limit,
        'offset': offset,
    }


# Dashboard
def get_date_label(day):
    return f"{WEEKDAYS[day.weekday()]}, {format_date(day)}"


def get_deadline(day, expiry_settings):
    hours, minutes = (int(part) for part in expiry_settings['processingDeadline'].split(':'))
    return timezone.make_aware(datetime.combine(day, time(hours, minutes)))


def _empty_summary():
    return {'total': 0, 'processed': 0, 'pending': 0}


def _count(summary, processed):
    summary['total'] += 1
    summary['processed' if processed else 'pending'] += 1


def _actions_on(day):
    return (
        ExpiryAction.objects
        .filter(is_undone=False, action_type__in=WORK_ACTIONS, created_at__date=day)
        .select_related('admin')
        .order_by('created_at', 'id')
    )


def _pre_action_date(action):
    """Expiry date the product had before the action was taken"""
    return action.previous_expiry_date or action.expiry_date


def _in_window(value, today, warning_end):
    return value is not None and today <= value <= warning_end


def _serialize_action(action):
    if action is None:
        return None
    return {
        'id': action.id,
        'actionType': action.action_type,
        'createdAt': action.created_at.isoformat(),
        'adminName': (action.admin.first_name or action.admin.username) if action.admin else None,
        'note': action.note,
    }


def get_expiry_dashboard(today=None):
    """
    Build the daily worklist.

    Products acted on during the day stay on the list as processed, placed by
    the date they had when the action was taken.
    A product whose date was moved into the window today is placed by its
    current date.
    """
    actual_today = get_today()
    today = today or actual_today
    expiry_settings = get_expiry_settings()
    deadline = get_deadline(today, expiry_settings)

    dashboard = {
        'date': today.isoformat(),
        'dateLabel': get_date_label(today),
        'deadlineLabel': f"Bearbeitung bis {expiry_settings['processingDeadline']} Uhr",
        'deadlinePassed': timezone.now() > deadline,
        'preview': {'isPreview': today != actual_today, 'date': today.isoformat()},
        'settings': expiry_settings,
        'stats': {'total': 0, 'processed': 0, 'pending': 0, 'completionRate': 0, 'progressLabel': '0/0'},
        'actionSummary': {BUCKET_REMOVE: _empty_summary(), BUCKET_LABEL: _empty_summary()},
        'categories': [],
    }
    if not expiry_settings['enabled']:
        return dashboard

    critical_end, warning_end = get_windows(today, expiry_settings)

    day_actions = defaultdict(list)
    for action in _actions_on(today):
        day_actions[action.product_id].append(action)

    candidates = {
        product.id: product
        for product in _candidate_queryset().filter(expiry_date__gte=today, expiry_date__lte=warning_end)
    }
    current_ids = set(candidates)
    missing = set(day_actions) - set(candidates)
    if missing:
        active_actions = ExpiryAction.objects.filter(is_undone=False).select_related('admin').order_by('-created_at', '-id')
        for product in (Product.objects.filter(id__in=missing).select_related('category')
                        .prefetch_related(Prefetch('expiry_actions', queryset=active_actions, to_attr='active_actions'))):
            candidates[product.id] = product

    grouped = defaultdict(list)
    for product in candidates.values():
        actions_today = day_actions.get(product.id, [])
        reference_date = _pre_action_date(actions_today[0]) if actions_today else product.expiry_date
        if actions_today and not _in_window(reference_date, today, warning_end) and product.id in current_ids:
            # date moved into the window today; only actions taken inside the window count
            reference_date = product.expiry_date
            actions_today = [a for a in actions_today if _in_window(_pre_action_date(a), today, warning_end)]
        if not _in_window(reference_date, today, warning_end):
            continue

        date_action_today = any(a.action_type in DATE_ACTIONS for a in actions_today)
        if reference_date <= critical_end:
            task_type, bucket = TASK_REMOVE, BUCKET_REMOVE
            is_processed = date_action_today
        else:
            task_type, bucket = TASK_LABEL, BUCKET_LABEL
            labeled_for_date = any(
                a.action_type == 'labeled' and a.expiry_date == product.expiry_date
                for a in product.active_actions
            )
            is_processed = date_action_today or labeled_for_date

        last_action = product.active_actions[0] if product.active_actions else None
        category_name = product.category.name if product.category else NO_CATEGORY
        grouped[(category_name, product.category_id)].append({
            'id': product.id,
            'name': product.name,
            'slug': product.slug,
            'barcode': product.barcode,
            'brand': product.brand,
            'stock': product.stock,
            'unit': product.unit,
            'imageUrl': product.main_image,
            'expiryDate': product.expiry_date.isoformat() if product.expiry_date else None,
            'expiryDateLabel': format_date(reference_date),
            'referenceDate': reference_date.isoformat(),
            'daysUntilExpiry': days_until_expiry(reference_date, today),
            'taskType': task_type,
            'bucket': bucket,
            'isProcessed': is_processed,
            'excludedFromCheck': product.exclude_from_expiry_check,
            'lastAction': _serialize_action(last_action),
        })

    stats = dashboard['stats']
    summary = dashboard['actionSummary']
    categories = []
    for (category_name, category_id), items in grouped.items():
        items.sort(key=lambda item: (item['referenceDate'], item['name'].lower()))
        category_summary = {BUCKET_REMOVE: _empty_summary(), BUCKET_LABEL: _empty_summary()}
        for item in items:
            _count(category_summary[item['bucket']], item['isProcessed'])
            _count(summary[item['bucket']], item['isProcessed'])
            _count(stats, item['isProcessed'])
        processed = sum(1 for item in items if item['isProcessed'])
        categories.append({
            'id': category_id,
            'name': category_name,
            'productCount': len(items),
            'processedCount': processed,
            'pendingCount': len(items) - processed,
            'summary': category_summary,
            'products': items,
        })

    categories.sort(key=lambda c: (c['id'] is None, c['name'].lower()))
    dashboard['categories'] = categories
    if stats['total']:
        stats['completionRate'] = round(stats['processed'] * 100 / stats['total'])
    stats['progressLabel'] = f"{stats['processed']}/{stats['total']}"
    return dashboard


# Daily jobs
def get_expiry_recipients():
    """Emails of admins allowed to see MHD management plus the configured admin address"""
    from backend.notifications.services import get_admin_recipients, get_notification_settings

    emails = [admin.email for admin in get_admin_recipients('expiry_management_view') if admin.email]
    admin_email = get_notification_settings().get('adminEmail')
    if admin_email:
        emails.append(admin_email)

    seen = set()
    unique = []
    for email in emails:
        if email.lower() not in seen:
            seen.add(email.lower())
            unique.append(email)
    return unique


def _claim_run(job_type, run_date, force):
    """
    Create the run record for a job and date.

    Returns (run, created); run is None when the job already ran and force is off.
    """
    try:
        with transaction.atomic():
            return ExpiryNotificationRun.objects.create(job_type=job_type, run_date=run_date), True
    except IntegrityError:
        if not force:
            return None, False
        return ExpiryNotificationRun.objects.get(job_type=job_type, run_date=run_date), False


def _finish_run(run, product_count, recipient_count, details):
    run.product_count = product_count
    run.recipient_count = recipient_count
    run.details = details
    run.save(update_fields=['product_count', 'recipient_count', 'details'])


def _skipped(message):
    return {'success': True, 'skipped': True, 'message': message, 'count': 0, 'emailResults': []}


def _dashboard_url():
    return f"{settings.FRONTEND_URL.rstrip('/')}/admin/expiry"


def _send_to_recipients(recipients, template, context):
    from backend.notifications.services import queue_email

    results = []
    for email in recipients:
        result = queue_email(email, template, context)
        results.append({'email': email, 'success': result['success'], 'emailLogId': result.get('email_log_id')})
    return results


def notify_daily_expiry_products(run_date=None, force=False):
    """Morning reminder with today's pending MHD tasks; runs once per local date"""
    from backend.notifications.services import notify_admins

    run_date = run_date or get_today()
    if not get_expiry_settings()['enabled']:
        return _skipped('MHD management is disabled')

    run, created = _claim_run('daily_reminder', run_date, force)
    if run is None:
        logger.info(f"Daily expiry reminder for {run_date} already sent, skipping")
        return _skipped(f"Daily reminder for {run_date.isoformat()} was already sent")

    try:
        dashboard = get_expiry_dashboard(run_date)
        pending_categories = []
        for category in dashboard['categories']:
            products = [
                {
                    'name': item['name'],
                    'barcode': item['barcode'] or '',
                    'expiry_date_label': item['expiryDateLabel'],
                    'task_label': TASK_LABELS[item['taskType']],
                }
                for item in category['products'] if not item['isProcessed']
            ]
            if products:
                pending_categories.append({'name': category['name'], 'products': products})

        summary = dashboard['actionSummary']
        pending_count = dashboard['stats']['pending']
        if not pending_count:
            _finish_run(run, 0, 0, {'message': 'no pending tasks'})
            return {'success': True, 'message': 'No pending MHD tasks today', 'count': 0, 'emailResults': []}

        recipients = get_expiry_recipients()
        context = {
            'date_label': dashboard['dateLabel'],
            'deadline_label': dashboard['deadlineLabel'],
            'total_count': pending_count,
            'remove_count': summary[BUCKET_REMOVE]['pending'],
            'label_count': summary[BUCKET_LABEL]['pending'],
            'categories': pending_categories,
            'dashboard_url': _dashboard_url(),
        }
        email_results = _send_to_recipients(recipients, 'expiry-daily-reminder', context)
        notify_admins(
            'expiry_management_view',
            f"MHD: {pending_count} Produkt(e) heute bearbeiten",
            f"{summary[BUCKET_REMOVE]['pending']} aussortieren, {summary[BUCKET_LABEL]['pending']} reduzieren. "
            f"{dashboard['deadlineLabel']}.",
            notification_type='expiry',
            link='/admin/expiry',
        )
        _finish_run(run, pending_count, len(recipients), {'emailResults': email_results})
    except Exception:
        if created:
            run.delete()
        raise

    sent = sum(1 for result in email_results if result['success'])
    logger.info(f"Daily expiry reminder for {run_date}: {pending_count} tasks, {sent}/{len(email_results)} mails")
    return {
        'success': True,
        'message': f"Reminder for {pending_count} product(s) sent to {sent}/{len(email_results)} recipient(s)",
        'count': pending_count,
        'emailResults': email_results,
    }


def check_expired_products_and_notify_admins(run_date=None, force=False):
    """Evening report of the MHD actions taken during the day; runs once per local date"""
    run_date = run_date or get_today()
    if not get_expiry_settings()['enabled']:
        return _skipped('MHD management is disabled')

    run, created = _claim_run('completion_report', run_date, force)
    if run is None:
        logger.info(f"Expiry completion report for {run_date} already sent, skipping")
        return _skipped(f"Completion report for {run_date.isoformat()} was already sent")

    try:
        actions = list(_actions_on(run_date).select_related('product'))
        if not actions:
            _finish_run(run, 0, 0, {'message': 'no actions'})
            return {'success': True, 'message': 'No MHD actions recorded today', 'count': 0, 'emailResults': []}

        counts = defaultdict(int)
        for action in actions:
            counts[action.action_type] += 1
        product_count = len({action.product_id for action in actions})
        pending_count = get_expiry_dashboard(run_date)['stats']['pending']

        context = {
            'date_label': get_date_label(run_date),
            'product_count': product_count,
            'labeled_count': counts['labeled'],
            'removed_count': counts['removed'],
            'date_updated_count': counts['date_updated'],
            'pending_count': pending_count,
            'actions': [
                {
                    'product_name': action.product.name,
                    'action_label': ACTION_LABELS[action.action_type],
                    'admin_name': (action.admin.first_name or action.admin.username) if action.admin else '-',
                    'time_label': timezone.localtime(action.created_at).strftime('%H:%M'),
                    'note': action.note,
                }
                for action in actions
            ],
        }
        recipients = get_expiry_recipients()
        email_results = _send_to_recipients(recipients, 'expiry-completion-notification', context)
        _finish_run(run, product_count, len(recipients), {'emailResults': email_results, 'pending': pending_count})
    except Exception:
        if created:
            run.delete()
        raise

    sent = sum(1 for result in email_results if result['success'])
    logger.info(f"Expiry completion report for {run_date}: {product_count} products, {sent}/{len(email_results)} mails")
    return {
        'success': True,
        'message': f"Report for {product_count} processed product(s) sent to {sent}/{len(email_results)} recipient(s)",
        'count': product_count,
        'emailResults': email_results,
    }
