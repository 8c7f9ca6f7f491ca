"""
Initial migration for the plans app.
"""
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion

PLAN_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("active", "Active"),
    ("paused", "Paused"),
    ("overdue", "Overdue"),
    ("cancelled", "Cancelled"),
    ("completed", "Completed"),
]

INSTALLMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("sent", "Sent"),
    ("paid", "Paid"),
    ("overdue", "Overdue"),
    ("paused", "Paused"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
    ("partially_refunded", "Partially refunded"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("clinics", "0001_initial"),
        ("patients", "0001_initial"),
        ("payment_links", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Plan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("total_amount", models.PositiveIntegerField(help_text="Pence")),
                ("installment_amount", models.PositiveIntegerField(help_text="Pence")),
                ("total_installments", models.PositiveIntegerField()),
                ("paid_installments", models.PositiveIntegerField(default=0)),
                ("progress", models.PositiveSmallIntegerField(default=0, help_text="0-100")),
                ("payment_frequency", models.CharField(max_length=20)),
                ("start_date", models.DateField()),
                ("next_due_date", models.DateField(blank=True, null=True)),
                ("has_overdue_payments", models.BooleanField(default=False)),
                ("status", models.CharField(choices=PLAN_STATUS_CHOICES, db_index=True, default="pending", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="plans", to="clinics.clinic")),
                ("patient", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="plans", to="patients.patient")),
                ("payment_link", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="plans", to="payment_links.paymentlink")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["clinic", "status"], name="plan_clinic_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="PaymentSchedule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.PositiveIntegerField(help_text="Pence")),
                ("due_date", models.DateField(db_index=True)),
                ("payment_number", models.PositiveIntegerField()),
                ("total_payments", models.PositiveIntegerField()),
                ("payment_frequency", models.CharField(max_length=20)),
                ("status", models.CharField(choices=INSTALLMENT_STATUS_CHOICES, db_index=True, default="pending", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="installments", to="plans.plan")),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="installments", to="clinics.clinic")),
                ("patient", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="installments", to="patients.patient")),
                ("payment_link", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="installments", to="payment_links.paymentlink")),
                ("payment_request", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="schedule", to="payments.paymentrequest")),
            ],
            options={
                "ordering": ["plan_id", "payment_number"],
                "constraints": [models.UniqueConstraint(fields=("plan", "payment_number"), name="uniq_plan_payment_number")],
            },
        ),
        migrations.CreateModel(
            name="PaymentActivity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action_type", models.CharField(db_index=True, max_length=50)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="activities", to="clinics.clinic")),
                ("patient", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="activities", to="patients.patient")),
                ("payment_link", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="activities", to="payment_links.paymentlink")),
                ("plan", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="activities", to="plans.plan")),
                ("performed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "verbose_name_plural": "payment activities",
            },
        ),
    ]
