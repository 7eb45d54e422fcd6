from __future__ import annotations

from django.db import models


class InterviewSlot(models.Model):
    """
    Bloque de entrevista de una etapa. Se vincula a lo sumo a UNA postulación,
    y una postulación tiene a lo sumo un horario por etapa (constraint condicional).
    Una vez reservado no se borra.
    """
    stage = models.ForeignKey("competitions.Stage", on_delete=models.CASCADE, related_name="interview_slots")
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    meeting_link = models.URLField(max_length=500, blank=True, default="")

    submission = models.ForeignKey(
        "competitions.Submission",
        on_delete=models.PROTECT,
        null=True, blank=True, related_name="interview_slots",
    )
    booked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=("stage", "submission"),
                condition=models.Q(submission__isnull=False),
                name="uniq_slot_per_submission_stage",
            ),
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F("start_time")),
                name="slot_end_after_start",
            ),
        ]
        ordering = ("stage", "date", "start_time", "id")

    def __str__(self) -> str:
        who = self.submission or "libre"
        return f"E{self.stage.number} · {self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M} · {who}"

    @property
    def is_booked(self) -> bool:
        return self.submission_id is not None
