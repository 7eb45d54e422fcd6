from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from evalcore.apps.competitions.models import Competition, Stage, Submission
from evalcore.apps.core.exceptions import CompetitionNotFound, InvalidConfiguration, StageNotFound
from evalcore.apps.judging.services.aggregates import Scoreboard, ScoreboardRow, build_scoreboard

logger = logging.getLogger(__name__)

LIVE = "LIVE"
FINAL = "FINAL"
MODES = (LIVE, FINAL)


@dataclass(frozen=True)
class RankedSubmission:
    rank: int
    submission_id: int
    title: str
    aggregate_score: Decimal
    evaluator_count: int
    status: str
    submitted_at: Any
    row: ScoreboardRow


# ---------- Utilidades ----------

def _rank_key(row: ScoreboardRow) -> Tuple:
    """
    Clave de orden:
      - mayor agregado primero (media sin redondear)
      - empate: el envío más temprano gana
      - id como último recurso (orden estricto siempre)
    """
    return (-row.aggregate.exact_score, row.submitted_at, row.submission_id)


def _resolve_stage(competition: Competition, stage_id: Optional[int]) -> Stage:
    if stage_id is not None:
        stage = Stage.objects.filter(pk=stage_id, competition=competition).first()
        if stage is None:
            raise StageNotFound(stage_id)
        return stage
    # Por defecto: la última etapa (la única en demo day)
    stage = Stage.objects.filter(competition=competition).order_by("-number").first()
    if stage is None:
        logger.error("Competition without stages cannot be ranked: competition=%s", competition.pk)
        raise InvalidConfiguration(f"La competencia {competition.pk} no tiene etapas configuradas.")
    return stage


def rank_scoreboard(scoreboard: Scoreboard) -> List[RankedSubmission]:
    """
    Ranking puro sobre un Scoreboard: excluye agregados inválidos y postulaciones
    sin submitted_at, y asigna puestos densos 1..N sin empates.
    """
    eligible = [r for r in scoreboard.valid_rows() if r.submitted_at is not None]
    ordered = sorted(eligible, key=_rank_key)
    return [
        RankedSubmission(
            rank=idx,
            submission_id=r.submission_id,
            title=r.title,
            aggregate_score=r.aggregate.aggregate_score,
            evaluator_count=r.aggregate.evaluator_count,
            status=r.aggregate.status,
            submitted_at=r.submitted_at,
            row=r,
        )
        for idx, r in enumerate(ordered, start=1)
    ]


# ---------- Entradas públicas de servicio ----------

def rank(competition_id: int, mode: str = LIVE, stage_id: Optional[int] = None) -> List[RankedSubmission]:
    """
    LIVE: recalcula en cada llamada y no escribe nada (apto para polling).
    FINAL: mismo cálculo, y persiste aggregate_score + rank en un único lote;
    las postulaciones que quedan fuera pierden rank y aggregate_score. Volver
    a llamarlo reemplaza el congelamiento previo.
    """
    if mode not in MODES:
        raise ValueError(f"Modo de ranking desconocido: {mode!r}")

    competition = Competition.objects.filter(pk=competition_id).first()
    if competition is None:
        raise CompetitionNotFound(competition_id)
    stage = _resolve_stage(competition, stage_id)

    if mode == LIVE:
        return rank_scoreboard(build_scoreboard(stage.pk))

    with transaction.atomic():
        # Lock de la competencia: dos congelamientos no se intercalan
        Competition.objects.select_for_update().filter(pk=competition.pk).first()
        ranked = rank_scoreboard(build_scoreboard(stage.pk))

        ranked_ids = [r.submission_id for r in ranked]
        Submission.objects.filter(competition=competition).exclude(pk__in=ranked_ids).update(
            rank=None, aggregate_score=None
        )

        by_id = {s.pk: s for s in Submission.objects.filter(pk__in=ranked_ids)}
        to_update: List[Submission] = []
        for r in ranked:
            s = by_id[r.submission_id]
            s.aggregate_score = r.aggregate_score
            s.rank = r.rank
            to_update.append(s)
        Submission.objects.bulk_update(to_update, ["aggregate_score", "rank"])

        finalized_at = timezone.now()
        Competition.objects.filter(pk=competition.pk).update(rankings_finalized_at=finalized_at)

    logger.info(
        "Rankings finalized: competition=%s stage=%s ranked=%s at=%s",
        competition.pk, stage.pk, len(ranked), finalized_at.isoformat(),
    )
    return ranked


def export_results(competition_id: int, stage_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Ranking en vivo aplanado con el desglose por evaluador, para consumidores de
    lectura. Ocultar identidades o feedback es cosa del consumidor.
    """
    results: List[Dict[str, Any]] = []
    for r in rank(competition_id, mode=LIVE, stage_id=stage_id):
        results.append(
            {
                "rank": r.rank,
                "submission_id": r.submission_id,
                "title": r.title,
                "aggregate_score": r.aggregate_score,
                "evaluator_count": r.evaluator_count,
                "status": r.status,
                "submitted_at": r.submitted_at,
                "evaluators": [
                    {
                        "evaluator_label": e.evaluator_label,
                        "weighted_total": e.weighted_total,
                        "per_criterion_scores": dict(e.per_criterion_scores),
                        "notes": e.notes,
                    }
                    for e in r.row.evaluators
                ],
            }
        )
    return results
