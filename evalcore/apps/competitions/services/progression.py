"""
Progresión manual entre etapas.

    Etapa 1 → Etapa 2 → {ACCEPTED, REJECTED}

No hay transiciones automáticas: que una postulación "pase" el corte no la mueve.
Cada operación recibe un lote explícito de ids, corre en una transacción y devuelve
cuántas filas cambiaron de verdad; reaplicarla sobre filas ya transicionadas es un no-op.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from django.db import transaction

from evalcore.apps.core.exceptions import StageNotFound, ValidationError

from ..models import Stage, Submission

logger = logging.getLogger(__name__)


def _ids(submission_ids: Iterable[int]) -> List[int]:
    ids = list(dict.fromkeys(submission_ids or []))
    if not ids:
        raise ValidationError("Se requiere al menos un id de postulación.")
    return ids


def advance(
    submission_ids: Iterable[int],
    from_stage: int,
    to_stage: int,
    competition_id: Optional[int] = None,
) -> int:
    """
    Mueve a `to_stage` las postulaciones PENDING del lote que están en `from_stage`.
    No mira si pasaron el corte: filtrar es responsabilidad del administrador.
    """
    ids = _ids(submission_ids)
    if to_stage <= from_stage:
        raise ValidationError("La etapa destino debe ser posterior a la etapa origen.")

    qs = Submission.objects.filter(
        pk__in=ids, current_stage=from_stage, status=Submission.STATUS_PENDING
    )
    if competition_id is not None:
        numbers = set(
            Stage.objects.filter(competition_id=competition_id, number__in=(from_stage, to_stage))
            .values_list("number", flat=True)
        )
        for n in (from_stage, to_stage):
            if n not in numbers:
                raise StageNotFound(f"{competition_id}/E{n}")
        qs = qs.filter(competition_id=competition_id)

    with transaction.atomic():
        count = qs.update(current_stage=to_stage)

    logger.info(
        "Submissions advanced: from=%s to=%s requested=%s affected=%s", from_stage, to_stage, len(ids), count
    )
    return count


def admit(submission_ids: Iterable[int]) -> int:
    """ACCEPTED y fuera de etapa (terminal)."""
    ids = _ids(submission_ids)
    with transaction.atomic():
        count = (
            Submission.objects.filter(pk__in=ids)
            .exclude(status=Submission.STATUS_ACCEPTED)
            .update(status=Submission.STATUS_ACCEPTED, current_stage=None)
        )
    logger.info("Submissions admitted: requested=%s affected=%s", len(ids), count)
    return count


def reject(submission_ids: Iterable[int]) -> int:
    """REJECTED y fuera de etapa (terminal)."""
    ids = _ids(submission_ids)
    with transaction.atomic():
        count = (
            Submission.objects.filter(pk__in=ids)
            .exclude(status=Submission.STATUS_REJECTED)
            .update(status=Submission.STATUS_REJECTED, current_stage=None)
        )
    logger.info("Submissions rejected: requested=%s affected=%s", len(ids), count)
    return count
