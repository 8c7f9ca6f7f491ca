"""
Plans and instalments keep their patient: deleting a patient with billing
history is refused instead of cascading.
"""
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ("patients", "0001_initial"),
        ("plans", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="plan",
            name="patient",
            field=models.ForeignKey(
                on_delete=django.db.models.deletion.PROTECT, related_name="plans", to="patients.patient"
            ),
        ),
        migrations.AlterField(
            model_name="paymentschedule",
            name="patient",
            field=models.ForeignKey(
                on_delete=django.db.models.deletion.PROTECT, related_name="installments", to="patients.patient"
            ),
        ),
    ]
