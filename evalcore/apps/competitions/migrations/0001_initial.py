from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Competition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=160)),
                ("slug", models.SlugField(unique=True)),
                ("kind", models.CharField(
                    choices=[("APPLICATION", "Convocatoria (aceleradora)"), ("DEMO_DAY", "Demo day")],
                    default="APPLICATION", max_length=16,
                )),
                ("rankings_finalized_at", models.DateTimeField(
                    blank=True, null=True, help_text="Último congelamiento del ranking (modo FINAL).",
                )),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ("-created_at", "name")},
        ),
        migrations.CreateModel(
            name="Stage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.PositiveIntegerField(help_text="Orden de la etapa dentro de la competencia (1..N).")),
                ("name", models.CharField(max_length=160)),
                ("kind", models.CharField(
                    choices=[
                        ("INITIAL_REVIEW", "Revisión inicial"),
                        ("INTERVIEW", "Entrevista"),
                        ("DEMO_DAY", "Jurado demo day"),
                    ],
                    default="INITIAL_REVIEW", max_length=16,
                )),
                ("is_active", models.BooleanField(default=False)),
                ("cutoff_score", models.DecimalField(
                    decimal_places=4, default=Decimal("0"), help_text="0 = sin corte.", max_digits=8,
                    validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                )),
                ("required_evaluator_percentage", models.DecimalField(
                    decimal_places=2, default=Decimal("75"), max_digits=5,
                    validators=[
                        django.core.validators.MinValueValidator(Decimal("0")),
                        django.core.validators.MaxValueValidator(Decimal("100")),
                    ],
                )),
                ("min_score", models.DecimalField(blank=True, decimal_places=4, max_digits=8, null=True)),
                ("max_score", models.DecimalField(blank=True, decimal_places=4, max_digits=8, null=True)),
                ("competition", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="stages",
                    to="competitions.competition",
                )),
            ],
            options={"ordering": ("competition", "number")},
        ),
        migrations.CreateModel(
            name="Criterion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=160)),
                ("weight", models.DecimalField(decimal_places=4, default=Decimal("1"), max_digits=8)),
                ("order", models.PositiveIntegerField(default=0)),
                ("stage", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="criteria",
                    to="competitions.stage",
                )),
            ],
            options={"ordering": ("stage", "order")},
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(blank=True, default="", max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("current_stage", models.PositiveIntegerField(blank=True, null=True)),
                ("status", models.CharField(
                    choices=[("PENDING", "Pendiente"), ("ACCEPTED", "Admitida"), ("REJECTED", "Rechazada")],
                    default="PENDING", max_length=10,
                )),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("aggregate_score", models.DecimalField(blank=True, decimal_places=4, max_digits=10, null=True)),
                ("rank", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("competition", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="submissions",
                    to="competitions.competition",
                )),
                ("owner", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="submissions", to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={"ordering": ("competition", "submitted_at", "id")},
        ),
        migrations.CreateModel(
            name="EvaluatorAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("weight", models.DecimalField(decimal_places=3, default=Decimal("1.0"), max_digits=6)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("competition", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="assignments",
                    to="competitions.competition",
                )),
                ("evaluator", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name="evaluator_assignments",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("stage", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.CASCADE,
                    related_name="assignments", to="competitions.stage",
                )),
            ],
            options={"ordering": ("competition", "evaluator_id")},
        ),
        migrations.AddConstraint(
            model_name="stage",
            constraint=models.UniqueConstraint(fields=("competition", "number"), name="uniq_competition_stage_number"),
        ),
        migrations.AddConstraint(
            model_name="stage",
            constraint=models.CheckConstraint(
                condition=models.Q(cutoff_score__gte=0), name="stage_cutoff_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="stage",
            constraint=models.CheckConstraint(
                condition=models.Q(required_evaluator_percentage__gte=0)
                & models.Q(required_evaluator_percentage__lte=100),
                name="stage_required_percentage_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="criterion",
            constraint=models.UniqueConstraint(fields=("stage", "order"), name="uniq_stage_criterion_order"),
        ),
        migrations.AddIndex(
            model_name="submission",
            index=models.Index(fields=["competition", "current_stage"], name="submission_comp_stage_idx"),
        ),
        migrations.AddConstraint(
            model_name="evaluatorassignment",
            constraint=models.UniqueConstraint(
                fields=("evaluator", "competition", "stage"), name="uniq_evaluator_assignment",
            ),
        ),
        migrations.AddConstraint(
            model_name="evaluatorassignment",
            constraint=models.UniqueConstraint(
                condition=models.Q(stage__isnull=True),
                fields=("evaluator", "competition"),
                name="uniq_evaluator_assignment_all_stages",
            ),
        ),
        migrations.AddConstraint(
            model_name="evaluatorassignment",
            constraint=models.CheckConstraint(condition=models.Q(weight__gt=0), name="assignment_weight_positive"),
        ),
    ]
