from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="NumberSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=100, verbose_name="Key")),
                ("period", models.CharField(blank=True, max_length=16, verbose_name="Period")),
                ("last_value", models.PositiveIntegerField(default=0, verbose_name="Last value")),
            ],
            options={
                "verbose_name": "Number sequence",
                "verbose_name_plural": "Number sequences",
                "unique_together": {("key", "period")},
            },
        ),
        migrations.CreateModel(
            name="PortalSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "brand_company",
                    models.CharField(
                        default="Tycoon",
                        help_text="Only items of this company are counted in sales analytics.",
                        max_length=100,
                        verbose_name="Brand company",
                    ),
                ),
                ("order_code_prefix", models.CharField(default="TY", max_length=10, verbose_name="Order code prefix")),
                (
                    "activity_log_limit",
                    models.PositiveIntegerField(default=50, verbose_name="Activity log entries shown per order"),
                ),
                (
                    "spare_categories",
                    models.CharField(
                        default="spare, spares, spare part, spare parts",
                        help_text="Comma separated item categories excluded from sales analytics.",
                        max_length=255,
                        verbose_name="Spare categories",
                    ),
                ),
            ],
            options={
                "verbose_name": "Portal settings",
            },
        ),
    ]
