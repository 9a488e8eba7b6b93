# Generated manually for the catalog, task board, bulk price and shelf label models

import backend.catalog.models
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('slug', models.SlugField(blank=True, max_length=220, unique=True)),
                ('description', models.TextField(blank=True)),
                ('image_url', models.URLField(blank=True)),
                ('sort_order', models.IntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'categories',
                'verbose_name_plural': 'categories',
                'ordering': ['sort_order', 'name'],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('slug', models.SlugField(blank=True, max_length=220, unique=True)),
                ('description', models.TextField(blank=True)),
                ('brand', models.CharField(blank=True, max_length=200)),
                ('price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('original_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('tax_rate', models.DecimalField(decimal_places=2, default=Decimal('7.00'), max_digits=5)),
                ('stock', models.IntegerField(default=0)),
                ('unit', models.CharField(choices=[('piece', 'Stück'), ('kg', 'kg'), ('g', 'g'), ('l', 'l'), ('ml', 'ml'), ('pack', 'Packung'), ('bunch', 'Bund')], default='piece', max_length=20)),
                ('barcode', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('image_urls', models.JSONField(blank=True, default=backend.catalog.models.default_image_urls)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('is_featured', models.BooleanField(default=False)),
                ('expiry_date', models.DateField(blank=True, db_index=True, null=True)),
                ('exclude_from_expiry_check', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='catalog.category')),
            ],
            options={
                'db_table': 'products',
                'indexes': [models.Index(fields=['expiry_date', 'exclude_from_expiry_check'], name='idx_product_expiry'), models.Index(fields=['category', 'is_active'], name='idx_product_category_active')],
            },
        ),
        migrations.CreateModel(
            name='ProductTaskIgnore',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('category', models.CharField(choices=[('price', 'Missing price'), ('image', 'Missing image'), ('stock', 'Out of stock'), ('barcode', 'Missing barcode')], max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('ignored_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ignored_tasks', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_ignores', to='catalog.product')),
            ],
            options={
                'db_table': 'product_task_ignores',
                'unique_together': {('product', 'category')},
            },
        ),
        migrations.CreateModel(
            name='BulkPriceUpdate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('update_type', models.CharField(choices=[('increase_percent', 'Increase by %'), ('decrease_percent', 'Decrease by %'), ('increase_amount', 'Increase by Amount'), ('decrease_amount', 'Decrease by Amount'), ('set_price', 'Set Price')], max_length=20)),
                ('value', models.DecimalField(decimal_places=2, max_digits=10)),
                ('filters', models.JSONField(default=dict)),
                ('affected_count', models.IntegerField(default=0)),
                ('changes', models.JSONField(default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('reverted_at', models.DateTimeField(blank=True, null=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bulk_price_updates', to=settings.AUTH_USER_MODEL)),
                ('reverted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reverted_price_updates', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'bulk_price_updates',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='BarcodeLabel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('unit', models.CharField(blank=True, max_length=50)),
                ('barcode', models.CharField(max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='shelf_labels', to='catalog.product')),
            ],
            options={
                'db_table': 'barcode_labels',
                'ordering': ['-created_at'],
            },
        ),
    ]
