from decimal import Decimal

import django.core.validators
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Item",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Created at"),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                (
                    "category",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="e.g. jeep, bike, car, scooter, spare.",
                        max_length=100,
                        null=True,
                        verbose_name="Category",
                    ),
                ),
                ("company", models.CharField(blank=True, default="", max_length=100, verbose_name="Company / brand")),
                ("unit", models.CharField(default="pcs", max_length=20, verbose_name="Unit")),
                (
                    "dealer_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                        verbose_name="Dealer rate",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
            ],
            options={
                "verbose_name": "Item",
                "verbose_name_plural": "Items",
                "ordering": ("name",),
            },
        ),
    ]
