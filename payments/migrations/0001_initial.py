"""
Initial migration for the payments app.

``Payment.payment_schedule`` is added in 0002 once the plans tables exist.
"""
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("clinics", "0001_initial"),
        ("patients", "0001_initial"),
        ("payment_links", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("patient_name", models.CharField(blank=True, max_length=255)),
                ("patient_email", models.EmailField(blank=True, max_length=254)),
                ("patient_phone", models.CharField(blank=True, max_length=50)),
                ("amount_paid", models.PositiveIntegerField()),
                ("refund_amount", models.PositiveIntegerField(default=0)),
                ("platform_fee", models.PositiveIntegerField(default=0)),
                ("stripe_fee", models.PositiveIntegerField(default=0)),
                ("net_amount", models.IntegerField(default=0)),
                ("payment_ref", models.CharField(db_index=True, max_length=32)),
                ("method", models.CharField(choices=[("card", "Card (Stripe)"), ("manual", "Recorded manually")], default="card", max_length=20)),
                ("stripe_payment_id", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ("stripe_refund_id", models.CharField(blank=True, max_length=255)),
                ("stripe_refund_fee", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(choices=[("paid", "Paid"), ("refunded", "Refunded"), ("partially_refunded", "Partially refunded")], db_index=True, default="paid", max_length=20)),
                ("paid_at", models.DateTimeField()),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to="clinics.clinic")),
                ("patient", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payments", to="patients.patient")),
                ("payment_link", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payments", to="payment_links.paymentlink")),
            ],
            options={
                "ordering": ["-paid_at", "-id"],
                "indexes": [models.Index(fields=["clinic", "paid_at"], name="payment_clinic_paid_idx")],
            },
        ),
        migrations.CreateModel(
            name="PaymentRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("token", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("patient_name", models.CharField(blank=True, max_length=255)),
                ("patient_email", models.EmailField(blank=True, max_length=254)),
                ("patient_phone", models.CharField(blank=True, max_length=50)),
                ("custom_amount", models.PositiveIntegerField(blank=True, help_text="Pence", null=True)),
                ("message", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("sent", "Sent"), ("paid", "Paid"), ("cancelled", "Cancelled"), ("failed", "Failed")], db_index=True, default="sent", max_length=20)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payment_requests", to="clinics.clinic")),
                ("patient", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payment_requests", to="patients.patient")),
                ("payment_link", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payment_requests", to="payment_links.paymentlink")),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="requests", to="payments.payment")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["clinic", "status"], name="payreq_clinic_status_idx")],
            },
        ),
    ]
