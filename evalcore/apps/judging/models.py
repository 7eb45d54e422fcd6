from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone


class ScoreRecord(models.Model):
    """
    Puntuación de un evaluador para una postulación en una etapa.
    Se fuerza unicidad por (submission, stage, evaluator) en la BD: un segundo
    envío choca con el constraint y se reporta como DuplicateScore.
    """
    submission = models.ForeignKey(
        "competitions.Submission", on_delete=models.CASCADE, related_name="score_records"
    )
    stage = models.ForeignKey("competitions.Stage", on_delete=models.CASCADE, related_name="score_records")
    evaluator = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="score_records"
    )

    # {criterion_id: puntuación cruda}
    criteria_scores = models.JSONField(default=dict)
    weighted_total = models.DecimalField(max_digits=10, decimal_places=4)
    notes = models.TextField(blank=True, default="")

    scored_at = models.DateTimeField(default=timezone.now, editable=False)
    revised_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=("submission", "stage", "evaluator"), name="uniq_score_per_evaluator"
            ),
        ]
        ordering = ("stage_id", "submission_id", "evaluator_id")

    def __str__(self) -> str:
        return f"{self.submission} · E{self.stage.number} · {self.evaluator} = {self.weighted_total}"
