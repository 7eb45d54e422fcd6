from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence

from django.db import transaction
from django.utils import timezone

from evalcore.apps.core.conf import engine_setting
from evalcore.apps.core.exceptions import (
    CompetitionNotFound,
    InvalidConfiguration,
    StageNotFound,
    StagesAlreadyConfigured,
    SubmissionNotFound,
    ValidationError,
)

from ..models import Competition, Criterion, EvaluatorAssignment, Stage, Submission

logger = logging.getLogger(__name__)

_DEFAULT_KINDS = {1: Stage.KIND_INITIAL_REVIEW, 2: Stage.KIND_INTERVIEW}


def _decimal(value: Any, label: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidConfiguration(f"{label} debe ser numérico.")
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidConfiguration(f"{label} debe ser numérico (recibido {value!r}).")
    if not d.is_finite():
        raise InvalidConfiguration(f"{label} debe ser finito.")
    return d


def _get_competition(competition_id: int) -> Competition:
    competition = Competition.objects.filter(pk=competition_id).first()
    if competition is None:
        raise CompetitionNotFound(competition_id)
    return competition


def _get_stage(stage_id: int, for_update: bool = False) -> Stage:
    qs = Stage.objects.select_related("competition")
    if for_update:
        qs = qs.select_for_update()
    stage = qs.filter(pk=stage_id).first()
    if stage is None:
        raise StageNotFound(stage_id)
    return stage


# -------------------------------------------
# Creación de etapas y criterios
# -------------------------------------------
def configure_stages(competition_id: int, stage_configs: Sequence[Mapping[str, Any]]) -> List[Stage]:
    """
    Crea las etapas (1..N, en el orden recibido) con sus criterios, todo en una transacción.
    Cada config: {name, kind?, criteria: [{name, weight?, order?}], cutoff_score?,
                  required_evaluator_percentage?, min_score?, max_score?}
    - La etapa 1 queda activa; el resto inactivas.
    - Peso por defecto 1.0; debe ser > 0.
    - Si la competencia ya tiene etapas → StagesAlreadyConfigured.
    """
    competition = _get_competition(competition_id)
    if not stage_configs:
        raise InvalidConfiguration("Se requiere al menos una etapa.")

    with transaction.atomic():
        # Lock de la competencia: dos configuraciones simultáneas no pueden duplicar etapas
        Competition.objects.select_for_update().filter(pk=competition.pk).first()
        if Stage.objects.filter(competition=competition).exists():
            raise StagesAlreadyConfigured(competition.pk)

        created: List[Stage] = []
        for number, cfg in enumerate(stage_configs, start=1):
            name = (cfg.get("name") or "").strip()
            criteria_cfg = cfg.get("criteria") or []
            if not name:
                raise InvalidConfiguration(f"La etapa {number} necesita un nombre.")
            if not criteria_cfg:
                raise InvalidConfiguration(f"La etapa {number} necesita al menos un criterio.")

            kind = cfg.get("kind") or (
                Stage.KIND_DEMO_DAY if competition.kind == Competition.KIND_DEMO_DAY
                else _DEFAULT_KINDS.get(number, Stage.KIND_INTERVIEW)
            )
            min_score = cfg.get("min_score", engine_setting("DEFAULT_MIN_SCORE"))
            max_score = cfg.get("max_score", engine_setting("DEFAULT_MAX_SCORE"))
            min_d = _decimal(min_score, "min_score") if min_score is not None else None
            max_d = _decimal(max_score, "max_score") if max_score is not None else None
            if min_d is not None and max_d is not None and min_d > max_d:
                raise InvalidConfiguration(f"Etapa {number}: min_score no puede ser mayor que max_score.")

            stage = Stage.objects.create(
                competition=competition,
                number=number,
                name=name,
                kind=kind,
                is_active=(number == 1),
                min_score=min_d,
                max_score=max_d,
                required_evaluator_percentage=_validated_percentage(
                    cfg.get("required_evaluator_percentage", engine_setting("REQUIRED_EVALUATOR_PERCENTAGE"))
                ),
                cutoff_score=_validated_cutoff(cfg.get("cutoff_score", 0), min_d, max_d),
            )

            criteria: List[Criterion] = []
            for idx, c in enumerate(criteria_cfg):
                c_name = (c.get("name") or "").strip()
                if not c_name:
                    raise InvalidConfiguration(f"Etapa {number}: criterio sin nombre.")
                weight = c.get("weight")
                weight = _decimal(1 if weight is None else weight, f"peso de {c_name}")
                if weight <= 0:
                    raise InvalidConfiguration(f"Etapa {number}: el peso de {c_name} debe ser positivo.")
                criteria.append(Criterion(stage=stage, name=c_name, weight=weight, order=c.get("order", idx)))
            if len({c.order for c in criteria}) != len(criteria):
                raise InvalidConfiguration(f"Etapa {number}: orden de criterios repetido.")
            Criterion.objects.bulk_create(criteria)
            created.append(stage)

    logger.info("Stages configured: competition=%s stages=%s", competition.pk, len(created))
    return created


# -------------------------------------------
# Ajustes de corte y umbral
# -------------------------------------------
def _validated_percentage(value: Any) -> Decimal:
    pct = _decimal(value, "required_evaluator_percentage")
    if pct < 0 or pct > 100:
        raise ValidationError("El porcentaje requerido de evaluadores debe estar entre 0 y 100.")
    return pct


def _validated_cutoff(value: Any, min_score: Optional[Decimal], max_score: Optional[Decimal]) -> Decimal:
    cutoff = _decimal(value, "cutoff_score")
    if cutoff < 0:
        raise ValidationError("El corte no puede ser negativo.")
    if cutoff == 0:
        return cutoff  # sin corte
    if (min_score is not None and cutoff < min_score) or (max_score is not None and cutoff > max_score):
        raise ValidationError(f"El corte debe estar entre {min_score} y {max_score}.")
    return cutoff


def update_stage_thresholds(
    stage_id: int,
    cutoff_score: Any = None,
    required_evaluator_percentage: Any = None,
) -> Stage:
    """Único ajuste permitido tras empezar a puntuar: corte y % de evaluadores."""
    if cutoff_score is None and required_evaluator_percentage is None:
        raise ValidationError("Indica al menos cutoff_score o required_evaluator_percentage.")

    with transaction.atomic():
        stage = _get_stage(stage_id, for_update=True)
        fields: List[str] = []
        if cutoff_score is not None:
            stage.cutoff_score = _validated_cutoff(cutoff_score, stage.min_score, stage.max_score)
            fields.append("cutoff_score")
        if required_evaluator_percentage is not None:
            stage.required_evaluator_percentage = _validated_percentage(required_evaluator_percentage)
            fields.append("required_evaluator_percentage")
        stage.save(update_fields=fields)

    logger.info(
        "Stage thresholds updated: stage=%s cutoff=%s required_pct=%s",
        stage.pk, stage.cutoff_score, stage.required_evaluator_percentage,
    )
    return stage


def activate_stage(stage_id: int) -> Stage:
    """Deja activa solo esta etapa dentro de su competencia."""
    with transaction.atomic():
        stage = _get_stage(stage_id, for_update=True)
        Stage.objects.filter(competition_id=stage.competition_id).exclude(pk=stage.pk).update(is_active=False)
        Stage.objects.filter(pk=stage.pk).update(is_active=True)
        stage.is_active = True
    logger.info("Stage activated: competition=%s stage=%s", stage.competition_id, stage.pk)
    return stage


# -------------------------------------------
# Evaluadores
# -------------------------------------------
def assign_evaluator(
    competition_id: int,
    evaluator_id: int,
    weight: Any = None,
    stage_id: Optional[int] = None,
) -> EvaluatorAssignment:
    """
    Alta o actualización de la asignación (evaluator, competition[, stage]).
    El peso se fija aquí: por defecto EVALCORE["DEFAULT_EVALUATOR_WEIGHT"], siempre > 0.
    """
    competition = _get_competition(competition_id)
    stage = None
    if stage_id is not None:
        stage = _get_stage(stage_id)
        if stage.competition_id != competition.pk:
            raise ValidationError(f"La etapa {stage_id} no pertenece a la competencia {competition_id}.")

    w = _decimal(engine_setting("DEFAULT_EVALUATOR_WEIGHT") if weight is None else weight, "peso del evaluador")
    if w <= 0:
        raise ValidationError("El peso del evaluador debe ser positivo.")

    with transaction.atomic():
        assignment, created = EvaluatorAssignment.objects.update_or_create(
            evaluator_id=evaluator_id,
            competition=competition,
            stage=stage,
            defaults={"weight": w},
        )

    logger.info(
        "Evaluator %s: competition=%s evaluator=%s stage=%s weight=%s",
        "assigned" if created else "reassigned", competition.pk, evaluator_id, stage_id, w,
    )
    return assignment


# -------------------------------------------
# Envío de la postulación
# -------------------------------------------
def submit_submission(submission_id: int) -> Submission:
    """
    Marca la postulación como enviada: fija submitted_at (una sola vez) y la
    ubica en la etapa 1 si aún no está en ninguna. Idempotente.
    """
    with transaction.atomic():
        submission = Submission.objects.select_for_update().filter(pk=submission_id).first()
        if submission is None:
            raise SubmissionNotFound(submission_id)

        fields: List[str] = []
        if submission.submitted_at is None:
            submission.submitted_at = timezone.now()
            fields.append("submitted_at")
        if submission.current_stage is None and submission.status == Submission.STATUS_PENDING:
            submission.current_stage = 1
            fields.append("current_stage")
        if fields:
            submission.save(update_fields=fields)

    if fields:
        logger.info("Submission submitted: submission=%s fields=%s", submission.pk, fields)
    return submission


def describe_stage(stage: Stage) -> Dict[str, Any]:
    """Configuración de la etapa tal como la ve el motor durante un cálculo."""
    return {
        "stage_id": stage.pk,
        "number": stage.number,
        "name": stage.name,
        "kind": stage.kind,
        "is_active": stage.is_active,
        "cutoff_score": stage.cutoff_score,
        "required_evaluator_percentage": stage.required_evaluator_percentage,
        "min_score": stage.min_score,
        "max_score": stage.max_score,
        "criteria": [
            {"criterion_id": c.pk, "name": c.name, "weight": c.weight, "order": c.order}
            for c in stage.criteria.order_by("order", "id")
        ],
    }
