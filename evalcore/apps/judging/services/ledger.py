from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from evalcore.apps.competitions.models import Competition, Criterion, EvaluatorAssignment, Stage, Submission
from evalcore.apps.core.exceptions import (
    DuplicateScore,
    EvaluatorNotAssigned,
    InvalidConfiguration,
    InvalidScoreValue,
    MissingCriterionScore,
    ScoreNotFound,
    ScoreOutOfRange,
    StageNotFound,
    SubmissionNotFound,
    UnknownCriterion,
    ValidationError,
)
from evalcore.apps.judging.models import ScoreRecord
from evalcore.apps.judging.services.aggregates import quantize_score, refresh_submission_aggregate

logger = logging.getLogger(__name__)


# ------------------------------
# Cálculo del total ponderado
# ------------------------------
def _to_decimal(criterion_name: str, raw: Any) -> Decimal:
    if isinstance(raw, bool):
        raise InvalidScoreValue(criterion_name, raw)
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise InvalidScoreValue(criterion_name, raw)
    if not value.is_finite():
        raise InvalidScoreValue(criterion_name, raw)
    return value


def _json_number(value: Decimal):
    return int(value) if value == value.to_integral_value() else float(value)


def compute_weighted_total(
    criteria: Iterable[Criterion],
    criteria_scores: Mapping[Any, Any],
    min_score: Optional[Decimal] = None,
    max_score: Optional[Decimal] = None,
) -> Tuple[Decimal, Dict[str, Any]]:
    """
    weighted_total = Σ(score · weight) / Σ(weight) sobre TODOS los criterios de la etapa.
    Devuelve (total, puntuaciones normalizadas {str(criterion_id): número}).
    """
    criteria = list(criteria)
    if not criteria:
        logger.error("Stage without criteria cannot be scored")
        raise InvalidConfiguration("La etapa no tiene criterios configurados.")

    given = {str(k): v for k, v in (criteria_scores or {}).items()}

    total = Decimal("0")
    total_weight = Decimal("0")
    normalized: Dict[str, Any] = {}
    for c in criteria:
        key = str(c.pk)
        raw = given.get(key)
        if raw is None:
            raise MissingCriterionScore(c.name)
        value = _to_decimal(c.name, raw)
        if (min_score is not None and value < min_score) or (max_score is not None and value > max_score):
            raise ScoreOutOfRange(c.name, value, min_score, max_score)
        weight = Decimal(str(c.weight))
        total += value * weight
        total_weight += weight
        normalized[key] = _json_number(value)

    unknown = sorted(set(given) - set(normalized))
    if unknown:
        raise UnknownCriterion(unknown[0])

    if total_weight <= 0:
        logger.error("Criteria weights sum to %s; stage cannot be scored", total_weight)
        raise InvalidConfiguration("La suma de pesos de los criterios debe ser positiva.")

    return quantize_score(total / total_weight), normalized


# ------------------------------
# Helpers de carga
# ------------------------------
def _load_stage(stage_id: int) -> Stage:
    stage = Stage.objects.select_related("competition").filter(pk=stage_id).first()
    if stage is None:
        raise StageNotFound(stage_id)
    return stage


def _stage_criteria(stage: Stage):
    return list(Criterion.objects.filter(stage=stage).order_by("order", "id"))


def _lock_submission(submission_id: int, stage: Stage) -> Submission:
    """Bloquea la fila de la postulación: serializa escrituras y el recálculo del agregado."""
    submission = Submission.objects.select_for_update().filter(pk=submission_id).first()
    if submission is None:
        raise SubmissionNotFound(submission_id)
    if submission.competition_id != stage.competition_id:
        raise ValidationError(
            f"La postulación {submission_id} no pertenece a la competencia de la etapa {stage.pk}."
        )
    return submission


def _ensure_assignment(stage: Stage, evaluator_id: int) -> None:
    # Solo el demo day pondera por juez: sin asignación no hay peso
    if stage.competition.kind != Competition.KIND_DEMO_DAY:
        return
    assigned = EvaluatorAssignment.objects.filter(
        competition_id=stage.competition_id, evaluator_id=evaluator_id
    ).filter(Q(stage__isnull=True) | Q(stage=stage)).exists()
    if not assigned:
        raise EvaluatorNotAssigned(evaluator_id, stage.competition_id)


# ------------------------------
# Entradas públicas de servicio
# ------------------------------
def submit_score(
    submission_id: int,
    stage_id: int,
    evaluator_id: int,
    criteria_scores: Mapping[Any, Any],
    notes: str = "",
) -> ScoreRecord:
    """
    Registra la puntuación de un evaluador. Una sola por (submission, stage, evaluator):
    un segundo envío levanta DuplicateScore; para cambiarla se usa revise_score.
    El agregado de la postulación se recalcula en la misma transacción.
    """
    stage = _load_stage(stage_id)
    weighted_total, normalized = compute_weighted_total(
        _stage_criteria(stage), criteria_scores, stage.min_score, stage.max_score
    )

    with transaction.atomic():
        submission = _lock_submission(submission_id, stage)
        _ensure_assignment(stage, evaluator_id)
        try:
            with transaction.atomic():
                record = ScoreRecord.objects.create(
                    submission=submission,
                    stage=stage,
                    evaluator_id=evaluator_id,
                    criteria_scores=normalized,
                    weighted_total=weighted_total,
                    notes=notes or "",
                )
        except IntegrityError as exc:
            exists = ScoreRecord.objects.filter(
                submission_id=submission.pk, stage=stage, evaluator_id=evaluator_id
            ).exists()
            if exists:
                raise DuplicateScore(submission.pk, stage.pk, evaluator_id) from exc
            raise
        aggregate = refresh_submission_aggregate(submission, stage)

    logger.info(
        "Score submitted: submission=%s stage=%s evaluator=%s weighted_total=%s aggregate=%s status=%s",
        submission.pk, stage.pk, evaluator_id, weighted_total, aggregate.aggregate_score, aggregate.status,
    )
    return record


def revise_score(
    submission_id: int,
    stage_id: int,
    evaluator_id: int,
    criteria_scores: Mapping[Any, Any],
    notes: Optional[str] = None,
) -> ScoreRecord:
    """Revisión explícita de una puntuación existente (notes=None conserva las notas)."""
    stage = _load_stage(stage_id)
    weighted_total, normalized = compute_weighted_total(
        _stage_criteria(stage), criteria_scores, stage.min_score, stage.max_score
    )

    with transaction.atomic():
        submission = _lock_submission(submission_id, stage)
        _ensure_assignment(stage, evaluator_id)
        record = (
            ScoreRecord.objects.select_for_update()
            .filter(submission=submission, stage=stage, evaluator_id=evaluator_id)
            .first()
        )
        if record is None:
            raise ScoreNotFound(f"{submission_id}/{stage_id}/{evaluator_id}")

        record.criteria_scores = normalized
        record.weighted_total = weighted_total
        if notes is not None:
            record.notes = notes
        record.revised_at = timezone.now()
        record.save(update_fields=["criteria_scores", "weighted_total", "notes", "revised_at"])
        aggregate = refresh_submission_aggregate(submission, stage)

    logger.info(
        "Score revised: submission=%s stage=%s evaluator=%s weighted_total=%s aggregate=%s",
        submission.pk, stage.pk, evaluator_id, weighted_total, aggregate.aggregate_score,
    )
    return record


def get_score(submission_id: int, stage_id: int, evaluator_id: int) -> Optional[ScoreRecord]:
    """La puntuación del evaluador para (submission, stage), o None si aún no puntuó."""
    return (
        ScoreRecord.objects.filter(submission_id=submission_id, stage_id=stage_id, evaluator_id=evaluator_id)
        .select_related("stage")
        .first()
    )
