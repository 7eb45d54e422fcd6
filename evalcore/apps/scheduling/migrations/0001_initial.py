import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("competitions", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="InterviewSlot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                ("meeting_link", models.URLField(blank=True, default="", max_length=500)),
                ("booked_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("stage", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="interview_slots",
                    to="competitions.stage",
                )),
                ("submission", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.PROTECT,
                    related_name="interview_slots", to="competitions.submission",
                )),
            ],
            options={"ordering": ("stage", "date", "start_time", "id")},
        ),
        migrations.AddConstraint(
            model_name="interviewslot",
            constraint=models.UniqueConstraint(
                condition=models.Q(submission__isnull=False),
                fields=("stage", "submission"),
                name="uniq_slot_per_submission_stage",
            ),
        ),
        migrations.AddConstraint(
            model_name="interviewslot",
            constraint=models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F("start_time")),
                name="slot_end_after_start",
            ),
        ),
    ]
