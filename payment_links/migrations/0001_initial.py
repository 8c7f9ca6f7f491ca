"""
Initial migration for the payment_links app.
"""
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("clinics", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentLink",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("token", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("amount", models.PositiveIntegerField(help_text="Price in pence; per instalment for plans")),
                ("type", models.CharField(choices=[("deposit", "Deposit"), ("treatment", "Treatment"), ("consultation", "Consultation"), ("other", "Other"), ("payment_plan", "Payment plan")], default="other", max_length=20)),
                ("payment_plan", models.BooleanField(default=False)),
                ("payment_count", models.PositiveIntegerField(blank=True, null=True)),
                ("payment_cycle", models.CharField(blank=True, choices=[("weekly", "Weekly"), ("bi-weekly", "Every two weeks"), ("monthly", "Monthly")], max_length=20)),
                ("plan_total_amount", models.PositiveIntegerField(blank=True, help_text="Total in pence for plans", null=True)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payment_links", to="clinics.clinic")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["clinic", "is_active"], name="paylink_clinic_active_idx")],
            },
        ),
    ]
