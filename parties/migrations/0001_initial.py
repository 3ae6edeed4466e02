import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Party",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Created at"),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                ("city", models.CharField(blank=True, max_length=120, null=True, verbose_name="City")),
                ("gstin", models.CharField(blank=True, max_length=20, null=True, verbose_name="GSTIN")),
                (
                    "contact_person",
                    models.CharField(blank=True, max_length=255, null=True, verbose_name="Contact person"),
                ),
                ("phone", models.CharField(blank=True, max_length=50, null=True, verbose_name="Phone")),
                (
                    "credit_days",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Leave blank when no credit terms are agreed.",
                        null=True,
                        verbose_name="Credit days",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
            ],
            options={
                "verbose_name": "Party",
                "verbose_name_plural": "Parties",
                "ordering": ("name",),
            },
        ),
    ]
