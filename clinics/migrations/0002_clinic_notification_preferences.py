"""
Per-clinic switches for email and SMS notifications about its payments.
"""
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("clinics", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="clinic",
            name="email_notifications",
            field=models.BooleanField(default=True),
        ),
        migrations.AddField(
            model_name="clinic",
            name="sms_notifications",
            field=models.BooleanField(default=True),
        ),
    ]
