"""
Test suite for MHD (best-before date) management
Tests: date windows, action log and undo, daily worklist, idempotent notification jobs, API
"""
from datetime import date, timedelta
from io import StringIO

from django.core import mail
from django.core.management import call_command, CommandError
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.models import ActivityLog, StoreSettings
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, StoreTestCase
from backend.expiry import services
from backend.expiry.models import ExpiryAction, ExpiryNotificationRun
from backend.expiry.tasks import send_daily_expiry_reminder
from backend.notifications.models import Notification


def in_days(days):
    return timezone.localdate() + timedelta(days=days)


def set_expiry_settings(**values):
    store_settings = StoreSettings.load()
    store_settings.expiry_management_settings = {**store_settings.expiry_management_settings, **values}
    store_settings.save()


class ExpirySettingsTests(StoreTestCase):
    """Test reading and validating the MHD settings"""

    def test_defaults(self):
        self.assertEqual(services.get_expiry_settings(), {
            'enabled': True,
            'warningDays': 3,
            'criticalDays': 0,
            'processingDeadline': '20:00',
        })

    def test_partial_settings_are_merged_with_defaults(self):
        StoreSettings.objects.update_or_create(pk=1, defaults={'expiry_management_settings': {'warningDays': 5}})
        settings = services.get_expiry_settings()
        self.assertEqual(settings['warningDays'], 5)
        self.assertEqual(settings['processingDeadline'], '20:00')

    def test_update_persists(self):
        updated = services.update_expiry_settings({'warningDays': 5, 'criticalDays': 1, 'processingDeadline': '18:30'})
        self.assertEqual(updated['warningDays'], 5)
        self.assertEqual(services.get_expiry_settings()['processingDeadline'], '18:30')

    def test_critical_days_cannot_exceed_warning_days(self):
        with self.assertRaises(ValidationError) as ctx:
            services.update_expiry_settings({'warningDays': 2, 'criticalDays': 3})
        self.assertIn('criticalDays', ctx.exception.details)

    def test_invalid_values_rejected(self):
        for data in ({'warningDays': 0}, {'criticalDays': -1}, {'warningDays': '3'},
                     {'processingDeadline': '25:00'}, {'enabled': 'yes'}):
            with self.assertRaises(ValidationError):
                services.update_expiry_settings(data)
        self.assertEqual(services.get_expiry_settings()['warningDays'], 3)


class DateParsingTests(StoreTestCase):
    """Test date input handling"""

    def test_accepts_date_and_datetime_strings(self):
        self.assertEqual(services.parse_date_value('2026-10-18'), date(2026, 10, 18))
        self.assertEqual(services.parse_date_value(' 2026-10-18T09:30:00+02:00 '), date(2026, 10, 18))

    def test_rejects_trailing_text(self):
        with self.assertRaises(ValidationError):
            services.parse_date_value('2026-10-18xyz')

    def test_rejects_impossible_date(self):
        with self.assertRaises(ValidationError):
            services.parse_date_value('2026-02-30', 'newExpiryDate')


class ExpiryWindowTests(StoreTestCase):
    """Test critical and warning product lists"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.overdue = TestDataFactory.create_expiring_product(-1, name='Overdue')
        self.today = TestDataFactory.create_expiring_product(0, name='Today')
        self.tomorrow = TestDataFactory.create_expiring_product(1, name='Tomorrow')
        self.edge = TestDataFactory.create_expiring_product(3, name='Edge')
        self.later = TestDataFactory.create_expiring_product(4, name='Later')
        self.excluded = TestDataFactory.create_expiring_product(0, name='Excluded', exclude_from_expiry_check=True)
        self.undated = TestDataFactory.create_product(name='Undated')

    def test_critical_window(self):
        products = services.get_critical_products()
        self.assertEqual([p.id for p in products], [self.today.id])
        self.assertEqual(products[0].days_until_expiry, 0)
        self.assertIsNone(products[0].last_action)

    def test_warning_window(self):
        products = services.get_warning_products()
        self.assertEqual([p.id for p in products], [self.tomorrow.id, self.edge.id])
        self.assertEqual(products[1].days_until_expiry, 3)

    def test_critical_days_widen_critical_window(self):
        set_expiry_settings(criticalDays=1)
        self.assertEqual([p.id for p in services.get_critical_products()], [self.today.id, self.tomorrow.id])
        self.assertEqual([p.id for p in services.get_warning_products()], [self.edge.id])

    def test_labeled_product_leaves_critical_list(self):
        services.label_product(self.today.id, self.admin)
        self.assertEqual(services.get_critical_products(), [])

    def test_labeled_product_stays_in_warning_list(self):
        action = services.label_product(self.tomorrow.id, self.admin)
        products = services.get_warning_products()
        self.assertIn(self.tomorrow.id, [p.id for p in products])
        tomorrow = next(p for p in products if p.id == self.tomorrow.id)
        self.assertEqual(tomorrow.last_action.id, action.id)

    def test_removed_product_leaves_warning_list(self):
        services.remove_product(self.tomorrow.id, self.admin)
        self.assertNotIn(self.tomorrow.id, [p.id for p in services.get_warning_products()])

    def test_undone_label_returns_to_critical_list(self):
        action = services.label_product(self.today.id, self.admin)
        services.undo_action(action.id, self.admin)
        self.assertEqual([p.id for p in services.get_critical_products()], [self.today.id])


class ExpiryActionTests(StoreTestCase):
    """Test label, remove, date update and undo"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.product = TestDataFactory.create_expiring_product(2, name='Joghurt')

    def test_label_records_action(self):
        action = services.label_product(self.product.id, self.admin, note='-30%')
        self.assertEqual(action.action_type, 'labeled')
        self.assertEqual(action.expiry_date, self.product.expiry_date)
        self.assertEqual(action.days_until_expiry, 2)
        self.assertEqual(action.note, '-30%')

    def test_label_unknown_product(self):
        with self.assertRaises(NotFoundError):
            services.label_product(999999, self.admin)

    def test_label_requires_expiry_date(self):
        product = TestDataFactory.create_product()
        with self.assertRaises(ValidationError):
            services.label_product(product.id, self.admin)

    def test_label_rejects_excluded_product(self):
        product = TestDataFactory.create_expiring_product(1, exclude_from_expiry_check=True)
        with self.assertRaises(ValidationError):
            services.label_product(product.id, self.admin)

    def test_remove_with_new_date_and_exclusion(self):
        new_date = in_days(14)
        action = services.remove_product(self.product.id, self.admin, exclude_from_check=True,
                                         new_expiry_date=new_date.isoformat(),
                                         context={'scenario': 'new_stock', 'action': None})
        self.product.refresh_from_db()
        self.assertEqual(self.product.expiry_date, new_date)
        self.assertTrue(self.product.exclude_from_expiry_check)
        self.assertEqual(action.previous_expiry_date, in_days(2))
        self.assertEqual(action.expiry_date, new_date)
        self.assertEqual(action.days_until_expiry, 14)
        self.assertEqual(action.metadata, {'scenario': 'new_stock'})

    def test_remove_invalid_date(self):
        with self.assertRaises(ValidationError):
            services.remove_product(self.product.id, self.admin, new_expiry_date='2025-02-30')

    def test_update_expiry_date(self):
        action = services.update_expiry_date(self.product.id, self.admin, in_days(10).isoformat())
        self.product.refresh_from_db()
        self.assertEqual(self.product.expiry_date, in_days(10))
        self.assertEqual(action.action_type, 'date_updated')
        self.assertEqual(action.previous_expiry_date, in_days(2))

    def test_update_expiry_date_requires_date(self):
        with self.assertRaises(ValidationError):
            services.update_expiry_date(self.product.id, self.admin, '')
        with self.assertRaises(ValidationError):
            services.update_expiry_date(self.product.id, self.admin, 'morgen')

    def test_undo_removal_reverts_exclusion(self):
        action = services.remove_product(self.product.id, self.admin, exclude_from_check=True)
        undo_entry = services.undo_action(action.id, self.admin)

        self.product.refresh_from_db()
        action.refresh_from_db()
        self.assertFalse(self.product.exclude_from_expiry_check)
        self.assertTrue(action.is_undone)
        self.assertEqual(action.undone_by, self.admin)
        self.assertEqual(undo_entry.action_type, 'undone')
        self.assertEqual(undo_entry.previous_action_id, action.id)

    def test_undo_date_update_restores_previous_date(self):
        action = services.update_expiry_date(self.product.id, self.admin, in_days(10))
        undo_entry = services.undo_action(action.id, self.admin)
        self.product.refresh_from_db()
        self.assertEqual(self.product.expiry_date, in_days(2))
        self.assertEqual(undo_entry.metadata['restoredExpiryDate'], in_days(2).isoformat())

    def test_undo_keeps_date_changed_afterwards(self):
        action = services.update_expiry_date(self.product.id, self.admin, in_days(10))
        services.update_expiry_date(self.product.id, self.admin, in_days(20))
        services.undo_action(action.id, self.admin)
        self.product.refresh_from_db()
        self.assertEqual(self.product.expiry_date, in_days(20))

    def test_undo_twice_rejected(self):
        action = services.label_product(self.product.id, self.admin)
        services.undo_action(action.id, self.admin)
        with self.assertRaises(ValidationError):
            services.undo_action(action.id, self.admin)

    def test_undo_entry_cannot_be_undone(self):
        action = services.label_product(self.product.id, self.admin)
        undo_entry = services.undo_action(action.id, self.admin)
        with self.assertRaises(ValidationError):
            services.undo_action(undo_entry.id, self.admin)

    def test_undo_unknown_action(self):
        with self.assertRaises(NotFoundError):
            services.undo_action(999999, self.admin)

    def test_actions_are_never_deleted(self):
        action = services.label_product(self.product.id, self.admin)
        services.undo_action(action.id, self.admin)
        self.assertEqual(ExpiryAction.objects.filter(product=self.product).count(), 2)

    def test_history_filters(self):
        other_admin = TestDataFactory.create_admin()
        services.label_product(self.product.id, self.admin)
        services.remove_product(self.product.id, other_admin)

        history = services.get_action_history({'admin_id': str(other_admin.id)})
        self.assertEqual(history['total'], 1)
        self.assertEqual(history['actions'][0].action_type, 'removed')

        history = services.get_action_history({'action_type': 'labeled', 'date': timezone.localdate().isoformat()})
        self.assertEqual(history['total'], 1)
        self.assertEqual(history['limit'], 100)

        history = services.get_action_history({'date': in_days(-1).isoformat()})
        self.assertEqual(history['total'], 0)

    def test_history_newest_first_with_offset(self):
        first = services.label_product(self.product.id, self.admin)
        second = services.remove_product(self.product.id, self.admin)
        history = services.get_action_history({'limit': 1})
        self.assertEqual(history['actions'][0].id, second.id)
        history = services.get_action_history({'limit': 1, 'offset': 1})
        self.assertEqual(history['actions'][0].id, first.id)
        self.assertEqual(history['total'], 2)

    def test_history_rejects_bad_filters(self):
        with self.assertRaises(ValidationError):
            services.get_action_history({'action_type': 'eaten'})
        with self.assertRaises(ValidationError):
            services.get_action_history({'limit': 'viele'})


class ExpiryDashboardTests(StoreTestCase):
    """Test the daily worklist"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.dairy = TestDataFactory.create_category(name='Molkerei')
        self.bakery = TestDataFactory.create_category(name='Backwaren')
        self.milk = TestDataFactory.create_expiring_product(0, name='Milch', category=self.dairy)
        self.yogurt = TestDataFactory.create_expiring_product(2, name='Joghurt', category=self.dairy)
        self.bread = TestDataFactory.create_expiring_product(1, name='Brot', category=self.bakery)
        self.loose = TestDataFactory.create_expiring_product(3, name='Eier')

    def _product(self, dashboard, product_id):
        for category in dashboard['categories']:
            for item in category['products']:
                if item['id'] == product_id:
                    return item
        return None

    def test_buckets_and_grouping(self):
        dashboard = services.get_expiry_dashboard()
        self.assertEqual([c['name'] for c in dashboard['categories']], ['Backwaren', 'Molkerei', 'Ohne Kategorie'])
        milk = self._product(dashboard, self.milk.id)
        self.assertEqual(milk['taskType'], 'aussortieren')
        self.assertEqual(milk['bucket'], 'removeToday')
        yogurt = self._product(dashboard, self.yogurt.id)
        self.assertEqual(yogurt['taskType'], 'reduzieren')
        self.assertEqual(yogurt['daysUntilExpiry'], 2)
        self.assertEqual(dashboard['actionSummary']['removeToday'], {'total': 1, 'processed': 0, 'pending': 1})
        self.assertEqual(dashboard['actionSummary']['labelSoon'], {'total': 3, 'processed': 0, 'pending': 3})
        self.assertEqual(dashboard['stats']['progressLabel'], '0/4')
        self.assertFalse(dashboard['preview']['isPreview'])

    def test_label_marks_label_task_processed(self):
        services.label_product(self.yogurt.id, self.admin)
        dashboard = services.get_expiry_dashboard()
        self.assertTrue(self._product(dashboard, self.yogurt.id)['isProcessed'])
        dairy = next(c for c in dashboard['categories'] if c['name'] == 'Molkerei')
        self.assertEqual(dairy['processedCount'], 1)
        self.assertEqual(dairy['pendingCount'], 1)
        self.assertEqual(dashboard['stats']['completionRate'], 25)

    def test_label_does_not_finish_remove_task(self):
        services.label_product(self.milk.id, self.admin)
        dashboard = services.get_expiry_dashboard()
        self.assertFalse(self._product(dashboard, self.milk.id)['isProcessed'])

    def test_removed_product_stays_visible_as_processed(self):
        services.remove_product(self.milk.id, self.admin, new_expiry_date=in_days(30))
        dashboard = services.get_expiry_dashboard()
        milk = self._product(dashboard, self.milk.id)
        self.assertIsNotNone(milk)
        self.assertEqual(milk['bucket'], 'removeToday')
        self.assertTrue(milk['isProcessed'])
        self.assertEqual(milk['expiryDate'], in_days(30).isoformat())

    def test_date_moved_into_window_is_pending(self):
        later = TestDataFactory.create_expiring_product(30, name='Käse', category=self.dairy)
        services.update_expiry_date(later.id, self.admin, services.get_today())
        cheese = self._product(services.get_expiry_dashboard(), later.id)
        self.assertIsNotNone(cheese)
        self.assertEqual(cheese['bucket'], 'removeToday')
        self.assertFalse(cheese['isProcessed'])

        services.remove_product(later.id, self.admin)
        self.assertTrue(self._product(services.get_expiry_dashboard(), later.id)['isProcessed'])

    def test_excluded_after_removal_stays_visible(self):
        services.remove_product(self.bread.id, self.admin, exclude_from_check=True)
        dashboard = services.get_expiry_dashboard()
        self.assertTrue(self._product(dashboard, self.bread.id)['isProcessed'])

    def test_undone_action_is_pending_again(self):
        action = services.remove_product(self.milk.id, self.admin)
        services.undo_action(action.id, self.admin)
        dashboard = services.get_expiry_dashboard()
        self.assertFalse(self._product(dashboard, self.milk.id)['isProcessed'])

    def test_label_from_earlier_day_still_counts(self):
        action = services.label_product(self.yogurt.id, self.admin)
        ExpiryAction.objects.filter(pk=action.pk).update(created_at=timezone.now() - timedelta(days=1))
        dashboard = services.get_expiry_dashboard()
        self.assertTrue(self._product(dashboard, self.yogurt.id)['isProcessed'])

    def test_label_for_old_date_does_not_count(self):
        services.label_product(self.yogurt.id, self.admin)
        self.yogurt.expiry_date = in_days(3)
        self.yogurt.save()
        dashboard = services.get_expiry_dashboard()
        self.assertFalse(self._product(dashboard, self.yogurt.id)['isProcessed'])

    def test_preview_date(self):
        dashboard = services.get_expiry_dashboard(in_days(2))
        self.assertTrue(dashboard['preview']['isPreview'])
        self.assertEqual(dashboard['date'], in_days(2).isoformat())
        # Milch and Brot are past their date on the preview day
        self.assertIsNone(self._product(dashboard, self.milk.id))
        self.assertEqual(self._product(dashboard, self.yogurt.id)['taskType'], 'aussortieren')

    def test_disabled_returns_empty_dashboard(self):
        set_expiry_settings(enabled=False)
        dashboard = services.get_expiry_dashboard()
        self.assertEqual(dashboard['categories'], [])
        self.assertEqual(dashboard['stats']['total'], 0)
        self.assertFalse(dashboard['settings']['enabled'])

    def test_completion_rate_zero_without_tasks(self):
        dashboard = services.get_expiry_dashboard(in_days(60))
        self.assertEqual(dashboard['stats']['completionRate'], 0)
        self.assertEqual(dashboard['stats']['progressLabel'], '0/0')

    def test_deadline_label(self):
        set_expiry_settings(processingDeadline='18:00')
        dashboard = services.get_expiry_dashboard()
        self.assertEqual(dashboard['deadlineLabel'], 'Bearbeitung bis 18:00 Uhr')
        self.assertTrue(services.get_expiry_dashboard(in_days(-1))['deadlinePassed'])
        self.assertFalse(services.get_expiry_dashboard(in_days(2))['deadlinePassed'])


class ExpiryNotificationTests(StoreTestCase):
    """Test the idempotent morning reminder and evening report"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin(email='anna@test.com')
        self.viewer = TestDataFactory.create_admin(email='ben@test.com', permissions=['expiry_management_view'])
        TestDataFactory.create_admin(email='carl@test.com', permissions=['order_management'])
        TestDataFactory.create_user(email='kunde@test.com')
        self.product = TestDataFactory.create_expiring_product(0, name='Milch')

    def test_daily_reminder_sends_to_expiry_admins(self):
        result = services.notify_daily_expiry_products()
        self.assertTrue(result['success'])
        self.assertEqual(result['count'], 1)
        recipients = sorted(message.to[0] for message in mail.outbox)
        self.assertEqual(recipients, ['anna@test.com', 'ben@test.com'])
        self.assertIn('MHD-Verwaltung', mail.outbox[0].subject)
        self.assertIn('Milch', mail.outbox[0].alternatives[0][0])
        self.assertEqual(Notification.objects.filter(type='expiry').count(), 2)

    def test_daily_reminder_includes_admin_email(self):
        store_settings = StoreSettings.load()
        store_settings.email_notification_settings = {**store_settings.email_notification_settings,
                                                      'adminEmail': 'laden@test.com'}
        store_settings.save()
        result = services.notify_daily_expiry_products()
        self.assertEqual(len(result['emailResults']), 3)

    def test_daily_reminder_runs_once_per_day(self):
        services.notify_daily_expiry_products()
        mail.outbox.clear()
        result = services.notify_daily_expiry_products()
        self.assertTrue(result['skipped'])
        self.assertEqual(len(mail.outbox), 0)
        self.assertEqual(ExpiryNotificationRun.objects.filter(job_type='daily_reminder').count(), 1)

    def test_force_sends_again(self):
        services.notify_daily_expiry_products()
        mail.outbox.clear()
        result = services.notify_daily_expiry_products(force=True)
        self.assertFalse(result.get('skipped', False))
        self.assertEqual(len(mail.outbox), 2)

    def test_no_pending_tasks_sends_nothing(self):
        services.remove_product(self.product.id, self.admin)
        result = services.notify_daily_expiry_products()
        self.assertEqual(result['count'], 0)
        self.assertEqual(len(mail.outbox), 0)
        self.assertTrue(ExpiryNotificationRun.objects.filter(job_type='daily_reminder',
                                                             run_date=timezone.localdate()).exists())

    def test_disabled_skips_without_run_record(self):
        set_expiry_settings(enabled=False)
        result = services.notify_daily_expiry_products()
        self.assertTrue(result['skipped'])
        self.assertFalse(ExpiryNotificationRun.objects.exists())

    def test_completion_report(self):
        services.remove_product(self.product.id, self.admin, note='Abgelaufen')
        yogurt = TestDataFactory.create_expiring_product(2, name='Joghurt')
        services.label_product(yogurt.id, self.viewer)

        result = services.check_expired_products_and_notify_admins()
        self.assertTrue(result['success'])
        self.assertEqual(result['count'], 2)
        self.assertEqual(len(result['emailResults']), 2)
        self.assertTrue(all(r['success'] for r in result['emailResults']))
        self.assertIn('2 Produkt(e)', mail.outbox[0].subject)
        run = ExpiryNotificationRun.objects.get(job_type='completion_report')
        self.assertEqual(run.product_count, 2)

    def test_completion_report_ignores_undone_actions(self):
        action = services.label_product(self.product.id, self.admin)
        services.undo_action(action.id, self.admin)
        result = services.check_expired_products_and_notify_admins()
        self.assertEqual(result['count'], 0)
        self.assertEqual(len(mail.outbox), 0)

    def test_completion_report_runs_once_per_day(self):
        services.remove_product(self.product.id, self.admin)
        services.check_expired_products_and_notify_admins()
        result = services.check_expired_products_and_notify_admins()
        self.assertTrue(result['skipped'])
        self.assertEqual(len(mail.outbox), 2)

    def test_celery_task(self):
        result = send_daily_expiry_reminder.delay().get()
        self.assertEqual(result['count'], 1)
        result = send_daily_expiry_reminder.delay(timezone.localdate().isoformat()).get()
        self.assertTrue(result['skipped'])

    def test_celery_task_rejects_invalid_date(self):
        with self.assertRaises(ValidationError):
            send_daily_expiry_reminder('2026-02-30')
        self.assertEqual(ExpiryNotificationRun.objects.count(), 0)

    def test_management_command_rejects_invalid_date(self):
        with self.assertRaises(CommandError):
            call_command('check_expiry_and_notify', date='2026-02-30', stdout=StringIO())

    def test_management_command(self):
        out = StringIO()
        call_command('check_expiry_and_notify', job='all', stdout=out)
        output = out.getvalue()
        self.assertIn('Daily reminder', output)
        self.assertIn('Completion report', output)
        self.assertEqual(ExpiryNotificationRun.objects.count(), 2)


class ExpiryAPITests(StoreTestCase):
    """Test the /admin/expiry/ endpoints"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin(permissions=[
            'expiry_management_view', 'expiry_management_action', 'expiry_management_settings',
        ])
        self.viewer = TestDataFactory.create_admin(permissions=['expiry_management_view'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.product = TestDataFactory.create_expiring_product(0, name='Milch')

    def test_customer_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/admin/expiry/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_viewer_cannot_act(self):
        self.client.authenticate_user(self.viewer)
        self.assertEqual(self.client.get('/api/v1/admin/expiry/critical/').status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/admin/expiry/label/{self.product.id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_settings_update_needs_settings_permission(self):
        self.client.authenticate_user(self.viewer)
        response = self.client.put('/api/v1/admin/expiry/settings/', {'warningDays': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_settings_update(self):
        response = self.client.put('/api/v1/admin/expiry/settings/', {'warningDays': 5, 'criticalDays': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['warningDays'], 5)
        self.assertTrue(ActivityLog.objects.filter(action='expiry_settings_update').exists())

    def test_settings_update_invalid(self):
        response = self.client.put('/api/v1/admin/expiry/settings/', {'warningDays': 1, 'criticalDays': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertIn('criticalDays', response.data['errors'])

    def test_label_endpoint(self):
        response = self.client.post(f'/api/v1/admin/expiry/label/{self.product.id}/', {'note': 'rot'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['action_type'], 'labeled')
        self.assertEqual(response.data['product']['name'], 'Milch')
        log = ActivityLog.objects.get(action='expiry_label')
        self.assertEqual(log.entity_id, str(self.product.id))

    def test_label_unknown_product(self):
        response = self.client.post('/api/v1/admin/expiry/label/999999/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_remove_out_of_stock_forces_exclusion(self):
        response = self.client.post(f'/api/v1/admin/expiry/remove/{self.product.id}/',
                                    {'scenario': 'out_of_stock', 'excludeFromCheck': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['excluded_from_check'])
        self.assertEqual(response.data['metadata'], {'scenario': 'out_of_stock'})
        self.product.refresh_from_db()
        self.assertTrue(self.product.exclude_from_expiry_check)

    def test_update_date_requires_date(self):
        response = self.client.put(f'/api/v1/admin/expiry/update-date/{self.product.id}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_date_and_undo(self):
        new_date = in_days(7).isoformat()
        response = self.client.put(f'/api/v1/admin/expiry/update-date/{self.product.id}/',
                                   {'newExpiryDate': new_date}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        action_id = response.data['id']

        response = self.client.post(f'/api/v1/admin/expiry/undo/{action_id}/', format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['previous_action'], action_id)
        self.product.refresh_from_db()
        self.assertEqual(self.product.expiry_date, timezone.localdate())

        response = self.client.post(f'/api/v1/admin/expiry/undo/{action_id}/', format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dashboard_preview(self):
        response = self.client.get('/api/v1/admin/expiry/dashboard/', {'previewDate': in_days(1).isoformat()})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['preview']['isPreview'])

    def test_dashboard_invalid_preview_date(self):
        response = self.client.get('/api/v1/admin/expiry/dashboard/', {'previewDate': 'gestern'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_critical_list_serialization(self):
        response = self.client.get('/api/v1/admin/expiry/critical/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['days_until_expiry'], 0)
        self.assertIsNone(response.data[0]['last_action'])

    def test_history_endpoint(self):
        self.client.post(f'/api/v1/admin/expiry/label/{self.product.id}/', {}, format='json')
        response = self.client.get('/api/v1/admin/expiry/history/', {'productId': self.product.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['actions'][0]['admin']['id'], self.admin.id)

    def test_daily_reminder_endpoint_is_idempotent(self):
        response = self.client.post('/api/v1/admin/expiry/daily-reminder/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        response = self.client.post('/api/v1/admin/expiry/daily-reminder/', {}, format='json')
        self.assertTrue(response.data['skipped'])
        response = self.client.post('/api/v1/admin/expiry/daily-reminder/', {'force': True}, format='json')
        self.assertFalse(response.data.get('skipped', False))

    def test_check_and_notify_endpoint(self):
        self.client.post(f'/api/v1/admin/expiry/remove/{self.product.id}/', {}, format='json')
        response = self.client.post('/api/v1/admin/expiry/check-and-notify/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertTrue(ActivityLog.objects.filter(action='expiry_notify').exists())
