from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from django.db.models import Q

from evalcore.apps.competitions.models import Competition, EvaluatorAssignment, Stage, Submission
from evalcore.apps.core.conf import engine_setting
from evalcore.apps.core.exceptions import InvalidConfiguration, StageNotFound, SubmissionNotFound
from evalcore.apps.judging.models import ScoreRecord

logger = logging.getLogger(__name__)

STATUS_PENDING = "PENDING"
STATUS_PASSED = "PASSED"
STATUS_FAILED = "FAILED"

_HUNDRED = Decimal("100")
_PERCENT_PLACES = Decimal("0.01")


def _score_places() -> Decimal:
    return Decimal(1).scaleb(-int(engine_setting("SCORE_DECIMAL_PLACES")))


def quantize_score(value: Decimal) -> Decimal:
    return value.quantize(_score_places(), rounding=ROUND_HALF_UP)


# ---------- Valores ----------

@dataclass(frozen=True)
class Aggregate:
    """Resultado de reducir las puntuaciones de una postulación en una etapa."""
    submission_id: int
    stage_id: int
    aggregate_score: Optional[Decimal]
    evaluator_count: int
    total_evaluators: int
    evaluator_percentage: Decimal
    meets_evaluator_requirement: bool
    meets_cutoff: bool
    passed: bool
    status: str
    cutoff_score: Decimal
    validity_message: str = ""
    # Media sin redondear: corte y orden se comparan sobre este valor
    exact_score: Optional[Decimal] = None

    @property
    def is_valid(self) -> bool:
        return self.aggregate_score is not None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "stage_id": self.stage_id,
            "aggregate_score": self.aggregate_score,
            "evaluator_count": self.evaluator_count,
            "total_evaluators": self.total_evaluators,
            "evaluator_percentage": self.evaluator_percentage,
            "meets_evaluator_requirement": self.meets_evaluator_requirement,
            "meets_cutoff": self.meets_cutoff,
            "passed": self.passed,
            "status": self.status,
            "cutoff_score": self.cutoff_score,
            "validity_message": self.validity_message,
        }


@dataclass(frozen=True)
class EvaluatorBreakdown:
    evaluator_id: int
    evaluator_label: str
    weighted_total: Decimal
    per_criterion_scores: Dict[str, Any]
    notes: str


@dataclass(frozen=True)
class ScoreboardRow:
    submission_id: int
    title: str
    submitted_at: Any
    current_stage: Optional[int]
    status: str
    aggregate: Aggregate
    evaluators: Tuple[EvaluatorBreakdown, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Scoreboard:
    """
    Foto inmutable de una etapa. El ranking la consume por valor: nunca lee
    ScoreRecord ni las cachés de Submission.
    """
    competition_id: int
    stage_id: int
    stage_number: int
    total_evaluators: int
    rows: Tuple[ScoreboardRow, ...]

    def valid_rows(self) -> List[ScoreboardRow]:
        return [r for r in self.rows if r.aggregate.is_valid]

    def row_for(self, submission_id: int) -> Optional[ScoreboardRow]:
        for r in self.rows:
            if r.submission_id == submission_id:
                return r
        return None


# ---------- Utilidades ----------

def _load_stage(stage_id: int) -> Stage:
    stage = Stage.objects.select_related("competition").filter(pk=stage_id).first()
    if stage is None:
        raise StageNotFound(stage_id)
    return stage


def evaluator_label(user) -> str:
    full = (user.get_full_name() or "").strip() if hasattr(user, "get_full_name") else ""
    return full or user.get_username()


def _assignments_for_stage(stage: Stage):
    return EvaluatorAssignment.objects.filter(competition_id=stage.competition_id).filter(
        Q(stage__isnull=True) | Q(stage_id=stage.pk)
    )


def assigned_evaluator_ids(stage: Stage) -> Set[int]:
    return set(_assignments_for_stage(stage).values_list("evaluator_id", flat=True))


def total_evaluators_for_stage(stage: Stage) -> int:
    """
    Denominador de la regla de % de evaluadores:
      - evaluadores asignados a la etapa (o a toda la competencia);
      - si no hay asignaciones registradas, los evaluadores distintos que
        puntuaron alguna postulación de la etapa (aproximación).
    """
    assigned = assigned_evaluator_ids(stage)
    if assigned:
        return len(assigned)
    return ScoreRecord.objects.filter(stage=stage).values("evaluator_id").distinct().count()


def evaluator_weights_for_stage(stage: Stage) -> Dict[int, Decimal]:
    """Peso por evaluador; la asignación específica de la etapa pisa a la general."""
    weights: Dict[int, Decimal] = {}
    # stage NULL primero, luego la específica
    for a in _assignments_for_stage(stage).order_by("stage_id", "id"):
        if a.stage_id is None:
            weights.setdefault(a.evaluator_id, a.weight)
        else:
            weights[a.evaluator_id] = a.weight
    return weights


def _stage_submissions(stage: Stage):
    """Postulaciones que participan en la etapa: están en ella (o más adelante) o tienen puntuaciones ahí."""
    return (
        Submission.objects.filter(competition_id=stage.competition_id)
        .filter(Q(current_stage__gte=stage.number) | Q(score_records__stage=stage))
        .distinct()
        .order_by("id")
    )


# ---------- Reducción pura ----------

def reduce_scores(
    submission_id: int,
    stage: Stage,
    records: Iterable[ScoreRecord],
    total_evaluators: int,
    weights: Optional[Dict[int, Decimal]] = None,
    assigned: Optional[Set[int]] = None,
) -> Aggregate:
    """
    Reduce las puntuaciones ya cargadas en memoria a un Aggregate.
      • convocatoria: media simple de weighted_total
      • demo day (weights != None): Σ(total·peso) / Σ(peso)
    Con `assigned` no vacío solo cuentan las puntuaciones de esos evaluadores,
    igual que el denominador.
    Si no se alcanza el % de evaluadores, el agregado se reporta como None.
    """
    if assigned:
        records = [r for r in records if r.evaluator_id in assigned]
    records = sorted(records, key=lambda r: r.evaluator_id)
    cutoff = Decimal(str(stage.cutoff_score or 0))
    required = Decimal(str(stage.required_evaluator_percentage))
    count = len(records)

    if count == 0:
        return Aggregate(
            submission_id=submission_id,
            stage_id=stage.pk,
            aggregate_score=None,
            evaluator_count=0,
            total_evaluators=total_evaluators,
            evaluator_percentage=Decimal("0.00"),
            meets_evaluator_requirement=False,
            meets_cutoff=False,
            passed=False,
            status=STATUS_PENDING,
            cutoff_score=cutoff,
            validity_message="Ningún evaluador ha puntuado esta postulación todavía.",
        )

    if weights is None:
        raw = sum((r.weighted_total for r in records), Decimal("0")) / Decimal(count)
    else:
        num = Decimal("0")
        den = Decimal("0")
        for r in records:
            w = weights.get(r.evaluator_id)
            if w is None:
                logger.error(
                    "Evaluator without weight in weighted stage: stage=%s evaluator=%s", stage.pk, r.evaluator_id
                )
                raise InvalidConfiguration(
                    f"El evaluador {r.evaluator_id} puntuó la etapa {stage.pk} sin asignación con peso."
                )
            num += r.weighted_total * w
            den += w
        if den <= 0:
            logger.error("Non-positive judge weight sum: stage=%s submission=%s", stage.pk, submission_id)
            raise InvalidConfiguration(f"La suma de pesos de jueces en la etapa {stage.pk} no es positiva.")
        raw = num / den
    reported = quantize_score(raw)

    validity_message = ""
    if total_evaluators > 0:
        percentage = (Decimal(count) * _HUNDRED / Decimal(total_evaluators)).quantize(
            _PERCENT_PLACES, rounding=ROUND_HALF_UP
        )
        # comparación exacta, sin el redondeo de presentación
        meets_requirement = Decimal(count) * _HUNDRED >= required * Decimal(total_evaluators)
        if not meets_requirement:
            needed = (required * Decimal(total_evaluators) / _HUNDRED).to_integral_value(rounding=ROUND_CEILING)
            validity_message = (
                f"Solo {count} de {total_evaluators} evaluadores han puntuado "
                f"(se requiere {required}% = {needed} evaluadores)."
            )
    else:
        percentage = Decimal("100.00")
        meets_requirement = True

    meets_cutoff = cutoff <= 0 or raw >= cutoff
    passed = meets_requirement and meets_cutoff
    if meets_requirement:
        status = STATUS_PASSED if meets_cutoff else STATUS_FAILED
    else:
        status = STATUS_PENDING

    return Aggregate(
        submission_id=submission_id,
        stage_id=stage.pk,
        aggregate_score=reported if meets_requirement else None,
        evaluator_count=count,
        total_evaluators=total_evaluators,
        evaluator_percentage=percentage,
        meets_evaluator_requirement=meets_requirement,
        meets_cutoff=meets_cutoff,
        passed=passed,
        status=status,
        cutoff_score=cutoff,
        validity_message=validity_message,
        exact_score=raw if meets_requirement else None,
    )


def _weights_if_needed(stage: Stage) -> Optional[Dict[int, Decimal]]:
    if stage.competition.kind == Competition.KIND_DEMO_DAY:
        return evaluator_weights_for_stage(stage)
    return None


# ---------- Entradas públicas de servicio ----------

def compute_aggregate(submission_id: int, stage_id: int) -> Aggregate:
    """Recalcula el agregado de (submission, stage). Solo lectura."""
    stage = _load_stage(stage_id)
    if not Submission.objects.filter(pk=submission_id).exists():
        raise SubmissionNotFound(submission_id)
    records = list(ScoreRecord.objects.filter(submission_id=submission_id, stage=stage))
    return reduce_scores(
        submission_id,
        stage,
        records,
        total_evaluators_for_stage(stage),
        weights=_weights_if_needed(stage),
        assigned=assigned_evaluator_ids(stage),
    )


def refresh_submission_aggregate(submission: Submission, stage: Stage) -> Aggregate:
    """
    Camino de escritura: recalcula y guarda la caché `aggregate_score` cuando la
    etapa puntuada es la etapa actual de la postulación.
    Se llama dentro de la transacción del ledger, con la fila ya bloqueada.
    """
    aggregate = compute_aggregate(submission.pk, stage.pk)
    if submission.current_stage == stage.number:
        Submission.objects.filter(pk=submission.pk).update(aggregate_score=aggregate.aggregate_score)
        submission.aggregate_score = aggregate.aggregate_score
    return aggregate


def build_scoreboard(stage_id: int) -> Scoreboard:
    """
    Scoreboard de una etapa (una fila por postulación) con desglose por evaluador.
    Orden: agregado desc (inválidos al final), luego submitted_at asc, luego id.
    """
    stage = _load_stage(stage_id)
    submissions = list(_stage_submissions(stage))
    criteria = list(stage.criteria.order_by("order", "id"))
    total = total_evaluators_for_stage(stage)
    weights = _weights_if_needed(stage)
    assigned = assigned_evaluator_ids(stage)

    by_submission: Dict[int, List[ScoreRecord]] = {}
    for r in (
        ScoreRecord.objects.filter(stage=stage, submission_id__in=[s.pk for s in submissions])
        .select_related("evaluator")
        .order_by("submission_id", "evaluator_id")
    ):
        by_submission.setdefault(r.submission_id, []).append(r)

    rows: List[ScoreboardRow] = []
    for s in submissions:
        records = by_submission.get(s.pk, [])
        if assigned:
            records = [r for r in records if r.evaluator_id in assigned]
        aggregate = reduce_scores(s.pk, stage, records, total, weights=weights, assigned=assigned)
        breakdown = tuple(
            EvaluatorBreakdown(
                evaluator_id=r.evaluator_id,
                evaluator_label=evaluator_label(r.evaluator),
                weighted_total=r.weighted_total,
                per_criterion_scores={
                    c.name: r.criteria_scores[str(c.pk)]
                    for c in criteria
                    if str(c.pk) in (r.criteria_scores or {})
                },
                notes=r.notes,
            )
            for r in records
        )
        rows.append(
            ScoreboardRow(
                submission_id=s.pk,
                title=s.title,
                submitted_at=s.submitted_at,
                current_stage=s.current_stage,
                status=s.status,
                aggregate=aggregate,
                evaluators=breakdown,
            )
        )

    rows.sort(key=_scoreboard_key)
    return Scoreboard(
        competition_id=stage.competition_id,
        stage_id=stage.pk,
        stage_number=stage.number,
        total_evaluators=total,
        rows=tuple(rows),
    )


def _scoreboard_key(row: ScoreboardRow) -> Tuple:
    score = row.aggregate.exact_score
    ts = row.submitted_at.timestamp() if row.submitted_at else float("inf")
    return (score is None, -(score or Decimal("0")), ts, row.submission_id)


def evaluation_status(submission_id: int) -> Dict[str, Any]:
    """Resumen por etapa de una postulación, más su horario de entrevista reservado."""
    from evalcore.apps.scheduling.models import InterviewSlot  # import local para evitar ciclos

    submission = Submission.objects.select_related("competition").filter(pk=submission_id).first()
    if submission is None:
        raise SubmissionNotFound(submission_id)

    steps: List[Dict[str, Any]] = []
    for stage in Stage.objects.filter(competition=submission.competition).select_related("competition"):
        aggregate = compute_aggregate(submission.pk, stage.pk)
        steps.append(
            {
                "stage_id": stage.pk,
                "stage_number": stage.number,
                "stage_name": stage.name,
                "stage_kind": stage.kind,
                "aggregate_score": aggregate.aggregate_score,
                "evaluator_count": aggregate.evaluator_count,
                "status": aggregate.status,
                "is_current_stage": stage.number == submission.current_stage,
            }
        )

    slot = (
        InterviewSlot.objects.filter(submission=submission)
        .select_related("stage")
        .order_by("stage__number")
        .last()
    )
    return {
        "submission_id": submission.pk,
        "current_stage": submission.current_stage,
        "status": submission.status,
        "aggregate_score": submission.aggregate_score,
        "rank": submission.rank,
        "stages": steps,
        "interview_slot": None if slot is None else {
            "slot_id": slot.pk,
            "stage_number": slot.stage.number,
            "date": slot.date,
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "meeting_link": slot.meeting_link,
        },
    }


def judging_progress(stage_id: int, evaluator_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Avance del jurado en una etapa.
      - Con evaluator_id: cuántas postulaciones de la etapa ya puntuó ese evaluador.
      - Sin él: puntuaciones cargadas vs esperadas (postulaciones × evaluadores).
    """
    stage = _load_stage(stage_id)
    submission_ids = list(_stage_submissions(stage).values_list("id", flat=True))
    records = ScoreRecord.objects.filter(stage=stage, submission_id__in=submission_ids)

    if evaluator_id is not None:
        total = len(submission_ids)
        completed = records.filter(evaluator_id=evaluator_id).count()
    else:
        assigned = assigned_evaluator_ids(stage)
        if assigned:
            records = records.filter(evaluator_id__in=assigned)
        total = len(submission_ids) * total_evaluators_for_stage(stage)
        completed = records.count()

    progress = (Decimal(completed) * _HUNDRED / Decimal(total)) if total > 0 else Decimal("0")
    return {
        "stage_id": stage.pk,
        "total": total,
        "completed": completed,
        "remaining": max(total - completed, 0),
        "progress": int(progress.to_integral_value(rounding=ROUND_HALF_UP)),
    }
