import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("competitions", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ScoreRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("criteria_scores", models.JSONField(default=dict)),
                ("weighted_total", models.DecimalField(decimal_places=4, max_digits=10)),
                ("notes", models.TextField(blank=True, default="")),
                ("scored_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("revised_at", models.DateTimeField(blank=True, null=True)),
                ("evaluator", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="score_records",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("stage", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="score_records",
                    to="competitions.stage",
                )),
                ("submission", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="score_records",
                    to="competitions.submission",
                )),
            ],
            options={"ordering": ("stage_id", "submission_id", "evaluator_id")},
        ),
        migrations.AddConstraint(
            model_name="scorerecord",
            constraint=models.UniqueConstraint(
                fields=("submission", "stage", "evaluator"), name="uniq_score_per_evaluator",
            ),
        ),
    ]
