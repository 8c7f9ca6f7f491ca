"""
Initial migration for the notifications app.
"""
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("clinics", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[
                    ("payment_request", "Payment request"),
                    ("payment_reminder", "Payment reminder"),
                    ("payment_received", "Payment received"),
                    ("payment_success", "Payment success"),
                    ("payment_failed", "Payment failed"),
                    ("payment_refund", "Payment refund"),
                ], max_length=40)),
                ("recipient_type", models.CharField(choices=[("patient", "Patient"), ("clinic", "Clinic")], max_length=20)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("reference_id", models.CharField(blank=True, help_text="Id of the payment/request/plan this is about", max_length=64)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("sent", "Sent"), ("failed", "Failed")], db_index=True, default="pending", max_length=20)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("clinic", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to="clinics.clinic")),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["status", "created_at"], name="notif_status_created_idx")],
            },
        ),
    ]
