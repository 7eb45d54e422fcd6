from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.text import slugify


class Competition(models.Model):
    KIND_APPLICATION = "APPLICATION"
    KIND_DEMO_DAY = "DEMO_DAY"
    KIND_CHOICES = (
        (KIND_APPLICATION, "Convocatoria (aceleradora)"),
        (KIND_DEMO_DAY, "Demo day"),
    )

    name = models.CharField(max_length=160)
    slug = models.SlugField(unique=True)
    kind = models.CharField(max_length=16, choices=KIND_CHOICES, default=KIND_APPLICATION)
    rankings_finalized_at = models.DateTimeField(
        null=True, blank=True, help_text="Último congelamiento del ranking (modo FINAL)."
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "name")

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    @property
    def uses_judge_weights(self) -> bool:
        """Solo el demo day pondera por juez; la convocatoria usa media simple."""
        return self.kind == self.KIND_DEMO_DAY


class Stage(models.Model):
    KIND_INITIAL_REVIEW = "INITIAL_REVIEW"
    KIND_INTERVIEW = "INTERVIEW"
    KIND_DEMO_DAY = "DEMO_DAY"
    KIND_CHOICES = (
        (KIND_INITIAL_REVIEW, "Revisión inicial"),
        (KIND_INTERVIEW, "Entrevista"),
        (KIND_DEMO_DAY, "Jurado demo day"),
    )

    competition = models.ForeignKey(Competition, on_delete=models.CASCADE, related_name="stages")
    number = models.PositiveIntegerField(help_text="Orden de la etapa dentro de la competencia (1..N).")
    name = models.CharField(max_length=160)
    kind = models.CharField(max_length=16, choices=KIND_CHOICES, default=KIND_INITIAL_REVIEW)
    is_active = models.BooleanField(default=False)

    cutoff_score = models.DecimalField(
        max_digits=8, decimal_places=4, default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text="0 = sin corte.",
    )
    required_evaluator_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("75"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    # Rango de cada criterio; vacío = sin validación de rango
    min_score = models.DecimalField(max_digits=8, decimal_places=4, null=True, blank=True)
    max_score = models.DecimalField(max_digits=8, decimal_places=4, null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("competition", "number"), name="uniq_competition_stage_number"),
            models.CheckConstraint(
                condition=models.Q(cutoff_score__gte=0),
                name="stage_cutoff_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(required_evaluator_percentage__gte=0)
                & models.Q(required_evaluator_percentage__lte=100),
                name="stage_required_percentage_range",
            ),
        ]
        ordering = ("competition", "number")

    def __str__(self) -> str:
        return f"{self.competition.name} · E{self.number} · {self.name}"

    def clean(self):
        if self.min_score is not None and self.max_score is not None and self.min_score > self.max_score:
            raise ValidationError("min_score no puede ser mayor que max_score")


class Criterion(models.Model):
    stage = models.ForeignKey(Stage, on_delete=models.CASCADE, related_name="criteria")
    name = models.CharField(max_length=160)
    weight = models.DecimalField(max_digits=8, decimal_places=4, default=Decimal("1"))
    order = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("stage", "order"), name="uniq_stage_criterion_order"),
        ]
        ordering = ("stage", "order")

    def __str__(self) -> str:
        return f"{self.stage} · {self.name} (x{self.weight})"


class Submission(models.Model):
    STATUS_PENDING = "PENDING"
    STATUS_ACCEPTED = "ACCEPTED"
    STATUS_REJECTED = "REJECTED"
    STATUS_CHOICES = (
        (STATUS_PENDING, "Pendiente"),
        (STATUS_ACCEPTED, "Admitida"),
        (STATUS_REJECTED, "Rechazada"),
    )

    competition = models.ForeignKey(Competition, on_delete=models.CASCADE, related_name="submissions")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name="submissions",
    )
    # Contenido opaco para el motor
    title = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")

    # Solo lo muta la progresión de etapas; NULL = fuera de etapa / terminal
    current_stage = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    # Clave de desempate: se fija una vez y no cambia
    submitted_at = models.DateTimeField(null=True, blank=True)

    # Cachés escritas por el motor
    aggregate_score = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    rank = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("competition", "submitted_at", "id")
        indexes = [
            models.Index(fields=("competition", "current_stage"), name="submission_comp_stage_idx"),
        ]

    def __str__(self) -> str:
        return self.title or f"Postulación #{self.pk}"

    def save(self, *args, **kwargs):
        if self.pk:
            stored = (
                Submission.objects.filter(pk=self.pk)
                .values_list("submitted_at", flat=True)
                .first()
            )
            if stored is not None and stored != self.submitted_at:
                raise ValidationError("submitted_at no puede modificarse una vez fijado.")
        super().save(*args, **kwargs)


class EvaluatorAssignment(models.Model):
    """
    Evaluador habilitado en una competencia. `stage` vacío = todas las etapas.
    El peso solo se usa en demo day y se valida al configurar, nunca se infiere.
    """
    evaluator = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="evaluator_assignments"
    )
    competition = models.ForeignKey(Competition, on_delete=models.CASCADE, related_name="assignments")
    stage = models.ForeignKey(
        Stage, on_delete=models.CASCADE, null=True, blank=True, related_name="assignments"
    )
    weight = models.DecimalField(max_digits=6, decimal_places=3, default=Decimal("1.0"))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=("evaluator", "competition", "stage"), name="uniq_evaluator_assignment"
            ),
            models.UniqueConstraint(
                fields=("evaluator", "competition"),
                condition=models.Q(stage__isnull=True),
                name="uniq_evaluator_assignment_all_stages",
            ),
            models.CheckConstraint(condition=models.Q(weight__gt=0), name="assignment_weight_positive"),
        ]
        ordering = ("competition", "evaluator_id")

    def __str__(self) -> str:
        scope = f"E{self.stage.number}" if self.stage_id else "todas"
        return f"{self.evaluator} · {self.competition} · {scope} (x{self.weight})"
