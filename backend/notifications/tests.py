"""
Test suite for notifications
Tests: template rendering and overrides, mail log, queued mail, in-app notifications, API
"""
from datetime import timedelta
from unittest import mock

from django.core import mail
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import NotFoundError
from backend.core.models import StoreSettings
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, StoreTestCase
from backend.notifications import services
from backend.notifications.email import TEMPLATES, render_email, send_mail
from backend.notifications.models import Notification, EmailLog
from backend.notifications.tasks import cleanup_old_notifications


def set_template_override(name, **override):
    store_settings = StoreSettings.load()
    store_settings.email_templates = {**(store_settings.email_templates or {}), name: override}
    store_settings.save()


class EmailRenderingTests(StoreTestCase):
    """Test default templates and admin overrides"""

    def test_every_template_renders_with_sample(self):
        for name, definition in TEMPLATES.items():
            subject, html = render_email(name, definition['sample'], overrides={})
            self.assertTrue(subject, name)
            self.assertIn('<html', html, name)

    def test_subject_uses_context(self):
        subject, _ = render_email('order-received', {'order_no': 'GS-1'}, overrides={})
        self.assertEqual(subject, 'Ihre Bestellung GS-1 ist eingegangen')

    def test_override_replaces_subject_and_body(self):
        set_template_override('order-received', subject='Danke für {{ order_no }}', body='<p>Nr. {{ order_no }}</p>')
        subject, html = render_email('order-received', {'order_no': 'GS-2'})
        self.assertEqual(subject, 'Danke für GS-2')
        self.assertEqual(html, '<p>Nr. GS-2</p>')

    def test_broken_override_falls_back(self):
        set_template_override('order-received', body='{% if %}kaputt')
        _, html = render_email('order-received', TEMPLATES['order-received']['sample'])
        self.assertIn('GS-20250101-0001', html)

    def test_unknown_template(self):
        with self.assertRaises(NotFoundError):
            render_email('newsletter', {})


class EmailDeliveryTests(StoreTestCase):
    """Test synchronous and queued sending"""

    def test_send_mail_records_log(self):
        result = send_mail('kunde@test.com', 'order-received', TEMPLATES['order-received']['sample'])
        self.assertTrue(result['success'])
        self.assertEqual(len(mail.outbox), 1)
        email_log = EmailLog.objects.get(pk=result['email_log_id'])
        self.assertEqual(email_log.status, 'sent')
        self.assertEqual(email_log.message_id, result['message_id'])
        self.assertEqual(email_log.attempts, 1)
        self.assertIsNotNone(email_log.sent_at)

    def test_send_failure_is_recorded_not_raised(self):
        with mock.patch('django.core.mail.EmailMultiAlternatives.send', side_effect=OSError('SMTP down')):
            result = send_mail('kunde@test.com', 'order-received', TEMPLATES['order-received']['sample'])
        self.assertFalse(result['success'])
        email_log = EmailLog.objects.get(pk=result['email_log_id'])
        self.assertEqual(email_log.status, 'failed')
        self.assertIn('SMTP down', email_log.error)

    def test_queue_email_sends_through_task(self):
        result = services.queue_email('kunde@test.com', 'order-cancelled', TEMPLATES['order-cancelled']['sample'])
        self.assertTrue(result['success'])
        self.assertTrue(result['queued'])
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('storniert', mail.outbox[0].subject)

    def test_queue_email_falls_back_when_broker_down(self):
        with mock.patch('backend.notifications.services.send_email_task') as task:
            task.delay.side_effect = ConnectionError('no broker')
            result = services.queue_email('kunde@test.com', 'order-received', TEMPLATES['order-received']['sample'])
        self.assertTrue(result['success'])
        self.assertFalse(result['queued'])
        self.assertEqual(len(mail.outbox), 1)

    def test_queue_email_unknown_template(self):
        with self.assertRaises(NotFoundError):
            services.queue_email('kunde@test.com', 'newsletter', {})
        self.assertEqual(EmailLog.objects.count(), 0)


class InAppNotificationTests(StoreTestCase):
    """Test notification services"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()

    def test_notify_admins_respects_permission(self):
        TestDataFactory.create_admin(permissions=['order_management'])
        TestDataFactory.create_admin(permissions=['coupon_management'])
        TestDataFactory.create_user(role='superadmin')
        created = services.notify_admins('order_management', 'Neue Bestellung')
        self.assertEqual(created, 2)

    def test_mark_read_and_unread_count(self):
        first = services.create_notification(self.user, 'Eins')
        services.create_notification(self.user, 'Zwei')
        self.assertEqual(services.get_unread_count(self.user), 2)
        services.mark_as_read(self.user, first.id)
        self.assertEqual(services.get_unread_count(self.user), 1)
        self.assertEqual(services.mark_all_as_read(self.user), 1)
        self.assertEqual(services.get_unread_count(self.user), 0)

    def test_cannot_touch_foreign_notification(self):
        other = TestDataFactory.create_user()
        notification = services.create_notification(other, 'Privat')
        with self.assertRaises(NotFoundError):
            services.mark_as_read(self.user, notification.id)
        with self.assertRaises(NotFoundError):
            services.delete_notification(self.user, notification.id)

    def test_cleanup_removes_only_old_read(self):
        old_read = services.create_notification(self.user, 'Alt gelesen')
        old_unread = services.create_notification(self.user, 'Alt ungelesen')
        services.create_notification(self.user, 'Neu')
        Notification.objects.filter(pk__in=[old_read.pk, old_unread.pk]).update(
            created_at=timezone.now() - timedelta(days=40))
        services.mark_as_read(self.user, old_read.id)

        self.assertEqual(cleanup_old_notifications.delay().get(), 1)
        self.assertFalse(Notification.objects.filter(pk=old_read.pk).exists())
        self.assertTrue(Notification.objects.filter(pk=old_unread.pk).exists())


class NotificationAPITests(StoreTestCase):
    """Test the notification endpoints"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list_own_notifications(self):
        services.create_notification(self.user, 'Meine')
        services.create_notification(TestDataFactory.create_user(), 'Fremde')
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['unread_count'], 1)

    def test_unread_filter(self):
        read = services.create_notification(self.user, 'Gelesen')
        services.create_notification(self.user, 'Neu')
        services.mark_as_read(self.user, read.id)
        response = self.client.get('/api/v1/notifications/', {'unread': 'true'})
        self.assertEqual([n['title'] for n in response.data['results']], ['Neu'])

    def test_mark_read_endpoints(self):
        notification = services.create_notification(self.user, 'Eins')
        response = self.client.post(f'/api/v1/notifications/{notification.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])
        response = self.client.get('/api/v1/notifications/unread-count/')
        self.assertEqual(response.data['count'], 0)

    def test_delete_endpoint(self):
        notification = services.create_notification(self.user, 'Weg')
        response = self.client.delete(f'/api/v1/notifications/{notification.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(f'/api/v1/notifications/{notification.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_send_requires_permission(self):
        response = self.client.post('/api/v1/admin/notifications/send/', {'title': 'x', 'to_admins': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_send_to_users(self):
        admin = TestDataFactory.create_admin(permissions=['notification_management'])
        self.client.authenticate_user(admin)
        response = self.client.post('/api/v1/admin/notifications/send/', {
            'user_ids': [self.user.id], 'title': 'Neue Öffnungszeiten', 'type': 'system',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Notification.objects.get(user=self.user).type, 'system')


class EmailTemplateAPITests(StoreTestCase):
    """Test template management endpoints"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin(permissions=['notification_management'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_templates(self):
        response = self.client.get('/api/v1/admin/email-templates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({t['name'] for t in response.data}, set(TEMPLATES))

    def test_get_default_template(self):
        response = self.client.get('/api/v1/admin/email-templates/order-received/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_customized'])
        self.assertIn('{% extends', response.data['body'])

    def test_update_and_reset(self):
        response = self.client.put('/api/v1/admin/email-templates/order-received/',
                                   {'subject': 'Bestellung {{ order_no }} erhalten'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_customized'])
        subject, _ = render_email('order-received', {'order_no': 'GS-3'})
        self.assertEqual(subject, 'Bestellung GS-3 erhalten')

        response = self.client.delete('/api/v1/admin/email-templates/order-received/')
        self.assertFalse(response.data['is_customized'])
        self.assertNotIn('order-received', StoreSettings.load().email_templates)

    def test_update_rejects_syntax_error(self):
        response = self.client.put('/api/v1/admin/email-templates/order-received/',
                                   {'body': '{% for %}'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_template(self):
        response = self.client.get('/api/v1/admin/email-templates/newsletter/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_preview_with_draft(self):
        response = self.client.post('/api/v1/admin/email-templates/order-received/preview/', {
            'subject': 'Entwurf {{ order_no }}',
            'context': {'order_no': 'GS-9'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['subject'], 'Entwurf GS-9')
        self.assertFalse(StoreSettings.load().email_templates)

    def test_email_log_list(self):
        send_mail('kunde@test.com', 'order-received', TEMPLATES['order-received']['sample'])
        response = self.client.get('/api/v1/admin/email-logs/', {'status': 'sent'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
