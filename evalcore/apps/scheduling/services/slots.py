from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable, List, Mapping, Union

from django.db import IntegrityError, transaction
from django.utils import timezone

from evalcore.apps.competitions.models import Stage, Submission
from evalcore.apps.core.exceptions import (
    SlotAlreadyBooked,
    SlotNotFound,
    StageNotFound,
    SubmissionAlreadyBooked,
    SubmissionNotFound,
    ValidationError,
)
from evalcore.apps.scheduling.models import InterviewSlot

logger = logging.getLogger(__name__)


@dataclass
class SlotSpec:
    date: date
    start_time: time
    end_time: time
    meeting_link: str = ""


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Fecha inválida: {value!r}")


def _parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Hora inválida: {value!r}")


def _as_spec(raw: Union[SlotSpec, Mapping[str, Any]]) -> SlotSpec:
    if isinstance(raw, SlotSpec):
        spec = SlotSpec(
            date=_parse_date(raw.date),
            start_time=_parse_time(raw.start_time),
            end_time=_parse_time(raw.end_time),
            meeting_link=raw.meeting_link or "",
        )
    else:
        missing = [k for k in ("date", "start_time", "end_time") if not raw.get(k)]
        if missing:
            raise ValidationError(f"Faltan campos del horario: {', '.join(missing)}")
        spec = SlotSpec(
            date=_parse_date(raw["date"]),
            start_time=_parse_time(raw["start_time"]),
            end_time=_parse_time(raw["end_time"]),
            meeting_link=raw.get("meeting_link") or "",
        )
    if spec.end_time <= spec.start_time:
        raise ValidationError(
            f"El horario {spec.date} {spec.start_time:%H:%M} termina antes de empezar ({spec.end_time:%H:%M})."
        )
    return spec


def _get_stage(stage_id: int) -> Stage:
    stage = Stage.objects.filter(pk=stage_id).first()
    if stage is None:
        raise StageNotFound(stage_id)
    return stage


# ------------------------------
# Entradas públicas de servicio
# ------------------------------
def generate_slots(stage_id: int, slot_specs: Iterable[Union[SlotSpec, Mapping[str, Any]]]) -> List[InterviewSlot]:
    """Crea en bloque horarios libres para la etapa. Valida todo antes de escribir."""
    stage = _get_stage(stage_id)
    specs = [_as_spec(s) for s in slot_specs]
    if not specs:
        return []

    with transaction.atomic():
        created = InterviewSlot.objects.bulk_create(
            [
                InterviewSlot(
                    stage=stage,
                    date=s.date,
                    start_time=s.start_time,
                    end_time=s.end_time,
                    meeting_link=s.meeting_link,
                )
                for s in specs
            ]
        )

    logger.info("Interview slots generated: stage=%s count=%s", stage.pk, len(created))
    return sorted(created, key=lambda s: (s.date, s.start_time, s.pk or 0))


def _bind_slot(slot: InterviewSlot, submission: Submission) -> None:
    """Escritura condicional: solo vincula si el horario sigue libre en la BD."""
    booked_at = timezone.now()
    try:
        with transaction.atomic():
            updated = InterviewSlot.objects.filter(pk=slot.pk, submission__isnull=True).update(
                submission=submission, booked_at=booked_at
            )
    except IntegrityError as exc:
        raise SubmissionAlreadyBooked(submission.pk, slot.stage_id) from exc
    if updated == 0:
        raise SlotAlreadyBooked(slot.pk)
    slot.submission = submission
    slot.booked_at = booked_at


def book_slot(submission_id: int, slot_id: int) -> InterviewSlot:
    """
    Reserva `slot_id` para la postulación.
    La vinculación es un UPDATE condicional (submission IS NULL): ante dos reservas
    simultáneas del mismo horario gana una y la otra recibe SlotAlreadyBooked.
    El constraint (stage, submission) cubre la carrera inversa (misma postulación, dos horarios).
    """
    slot = InterviewSlot.objects.select_related("stage").filter(pk=slot_id).first()
    if slot is None:
        raise SlotNotFound(slot_id)

    submission = Submission.objects.filter(pk=submission_id).first()
    if submission is None:
        raise SubmissionNotFound(submission_id)
    if submission.competition_id != slot.stage.competition_id:
        raise ValidationError(
            f"La postulación {submission_id} no pertenece a la competencia del horario {slot_id}."
        )

    with transaction.atomic():
        if slot.submission_id is not None:
            raise SlotAlreadyBooked(slot.pk)
        if InterviewSlot.objects.filter(stage_id=slot.stage_id, submission_id=submission.pk).exists():
            raise SubmissionAlreadyBooked(submission.pk, slot.stage_id)

        _bind_slot(slot, submission)

    logger.info("Interview slot booked: slot=%s submission=%s stage=%s", slot.pk, submission.pk, slot.stage_id)
    return slot


def list_available(stage_id: int) -> List[InterviewSlot]:
    _get_stage(stage_id)
    return list(
        InterviewSlot.objects.filter(stage_id=stage_id, submission__isnull=True).order_by("date", "start_time", "id")
    )


def list_all(stage_id: int) -> List[InterviewSlot]:
    _get_stage(stage_id)
    return list(
        InterviewSlot.objects.filter(stage_id=stage_id)
        .select_related("submission")
        .order_by("date", "start_time", "id")
    )
