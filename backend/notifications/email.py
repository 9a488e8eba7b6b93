"""
Email templates and delivery

File templates live in templates/emails/<name>.html; admins can override
subject and body per template (stored in StoreSettings.email_templates).
Both are rendered with the Django template engine.
"""
import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.core.mail.message import make_msgid
from django.template import Context, Engine, TemplateSyntaxError
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.html import strip_tags

from backend.core.exceptions import NotFoundError
from backend.core.models import StoreSettings
from .models import EmailLog

logger = logging.getLogger(__name__)

_SAMPLE_ORDER = {
    'store_name': 'Gruner Laden',
    'order_no': 'GS-20250101-0001',
    'customer_name': 'Max Mustermann',
    'order_type': 'Delivery',
    'status': 'accepted',
    'status_label': 'Angenommen',
    'old_status_label': 'Eingegangen',
    'items': [
        {'name': 'Bio Vollmilch 1l', 'quantity': 2, 'unit_price': '1.49', 'line_total': '2.98'},
        {'name': 'Bananen', 'quantity': 1, 'unit_price': '1.99', 'line_total': '1.99'},
    ],
    'subtotal': '4.97',
    'discount': '0.00',
    'delivery_fee': '4.99',
    'total': '9.96',
    'address': {'street': 'Hauptstraße 1', 'zip_code': '10115', 'city': 'Berlin'},
    'cancel_reason': '',
    'order_url': 'http://localhost:3000/orders/1',
}

TEMPLATES = {
    'order-received': {
        'description': 'Order confirmation for the customer',
        'subject': 'Ihre Bestellung {{ order_no }} ist eingegangen',
        'sample': _SAMPLE_ORDER,
    },
    'order-status-changed': {
        'description': 'Order status update for the customer',
        'subject': 'Bestellung {{ order_no }}: {{ status_label }}',
        'sample': _SAMPLE_ORDER,
    },
    'order-cancelled': {
        'description': 'Order cancellation for the customer',
        'subject': 'Bestellung {{ order_no }} wurde storniert',
        'sample': {**_SAMPLE_ORDER, 'status': 'cancelled', 'status_label': 'Storniert', 'cancel_reason': 'Artikel nicht verfügbar'},
    },
    'order-notification-admin': {
        'description': 'New order notice for the store',
        'subject': 'Neue Bestellung {{ order_no }} ({{ total }} €)',
        'sample': _SAMPLE_ORDER,
    },
    'expiry-daily-reminder': {
        'description': 'Morning MHD worklist for the admins',
        'subject': 'MHD-Verwaltung: {{ total_count }} Produkt(e) müssen heute bearbeitet werden',
        'sample': {
            'store_name': 'Gruner Laden',
            'date_label': '01.01.2025',
            'deadline_label': 'Bearbeitung bis 20:00 Uhr',
            'total_count': 2,
            'remove_count': 1,
            'label_count': 1,
            'categories': [{
                'name': 'Molkerei',
                'products': [
                    {'name': 'Joghurt Natur', 'barcode': '4001234567890', 'expiry_date_label': '01.01.2025', 'task_label': 'Aussortieren'},
                    {'name': 'Bio Vollmilch 1l', 'barcode': '4009876543210', 'expiry_date_label': '03.01.2025', 'task_label': 'Reduzieren'},
                ],
            }],
            'dashboard_url': 'http://localhost:3000/admin/expiry',
        },
    },
    'expiry-completion-notification': {
        'description': 'Evening MHD report of processed products',
        'subject': 'MHD-Verwaltung abgeschlossen - {{ product_count }} Produkt(e)',
        'sample': {
            'store_name': 'Gruner Laden',
            'date_label': '01.01.2025',
            'product_count': 2,
            'labeled_count': 1,
            'removed_count': 1,
            'date_updated_count': 0,
            'pending_count': 0,
            'actions': [
                {'product_name': 'Joghurt Natur', 'action_label': 'Aussortiert', 'admin_name': 'Anna', 'time_label': '09:14', 'note': ''},
                {'product_name': 'Bio Vollmilch 1l', 'action_label': 'Reduziert', 'admin_name': 'Anna', 'time_label': '09:20', 'note': '-30%'},
            ],
        },
    },
}


def _get_definition(name):
    definition = TEMPLATES.get(name)
    if definition is None:
        raise NotFoundError(f"Email template '{name}' not found")
    return definition


def get_template_overrides():
    return StoreSettings.load().email_templates or {}


def default_body(name):
    """Source of the file template"""
    _get_definition(name)
    engine = Engine.get_default()
    template = engine.get_template(f'emails/{name}.html')
    return template.source


def _render_string(source, context):
    template = Engine.get_default().from_string(source)
    return template.render(Context(context))


def render_email(name, context, overrides=None):
    """
    Render subject and HTML body.

    An admin override that fails to compile or render falls back to the file template.
    """
    definition = _get_definition(name)
    context = {'store_name': settings.STORE_NAME, **(context or {})}
    override = (overrides if overrides is not None else get_template_overrides()).get(name) or {}

    subject = None
    if override.get('subject'):
        try:
            subject = _render_string(override['subject'], context)
        except TemplateSyntaxError as e:
            logger.warning(f"Subject override for '{name}' is invalid, using default: {str(e)}")
    if not subject:
        subject = _render_string(definition['subject'], context)

    html = None
    if override.get('body'):
        try:
            html = _render_string(override['body'], context)
        except TemplateSyntaxError as e:
            logger.warning(f"Body override for '{name}' is invalid, using default: {str(e)}")
    if html is None:
        html = render_to_string(f'emails/{name}.html', context)

    return ' '.join(subject.split()), html


def validate_template_source(source):
    """Raise TemplateSyntaxError when an admin-provided template does not compile"""
    Engine.get_default().from_string(source or '')


def send_logged_email(email_log):
    """Render and send the mail described by an EmailLog; updates its status"""
    email_log.attempts += 1
    try:
        subject, html = render_email(email_log.template, email_log.context)
        if email_log.subject:
            subject = email_log.subject
        message = EmailMultiAlternatives(
            subject=subject,
            body=strip_tags(html),
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[email_log.to_email],
            headers={'Message-ID': make_msgid()},
        )
        message.attach_alternative(html, 'text/html')
        message.send(fail_silently=False)
    except Exception as e:
        email_log.status = 'failed'
        email_log.error = str(e)
        email_log.save(update_fields=['status', 'error', 'attempts'])
        logger.error(f"Sending '{email_log.template}' to {email_log.to_email} failed: {str(e)}")
        return {'success': False, 'error': str(e), 'email_log_id': email_log.id}

    email_log.status = 'sent'
    email_log.subject = subject
    email_log.error = ''
    email_log.sent_at = timezone.now()
    email_log.message_id = message.extra_headers['Message-ID']
    email_log.save(update_fields=['status', 'subject', 'error', 'sent_at', 'message_id', 'attempts'])
    logger.info(f"Sent '{email_log.template}' to {email_log.to_email}")
    return {'success': True, 'message_id': email_log.message_id, 'email_log_id': email_log.id}


def send_mail(to, template, context=None, subject=None):
    """Send a templated mail synchronously, recording an EmailLog"""
    _get_definition(template)
    email_log = EmailLog.objects.create(
        to_email=to,
        subject=subject or '',
        template=template,
        context=context or {},
    )
    return send_logged_email(email_log)
