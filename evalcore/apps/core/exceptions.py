"""
Errores del motor de evaluación.

Cuatro familias, cada una colgada de la excepción de Django equivalente para que
la capa de transporte pueda traducirlas sin conocer el motor:

  • ValidationError     → entrada inválida; no se reintenta.
  • ConflictError       → el estado actual impide la operación (4xx); el llamador
                          puede releer y reintentar con otra intención.
  • ConfigurationError  → configuración de etapa inválida; fatal.
  • NotFoundError       → id desconocido.
"""
from __future__ import annotations

from django.core import exceptions as django_exceptions


class EvaluationError(Exception):
    code = "evaluation_error"


# ---------------------------
# Validación
# ---------------------------
class ValidationError(EvaluationError, django_exceptions.ValidationError):
    code = "invalid"

    def __init__(self, message: str):
        django_exceptions.ValidationError.__init__(self, message, code=self.code)

    def __str__(self) -> str:
        return self.message


class MissingCriterionScore(ValidationError):
    code = "missing_criterion_score"

    def __init__(self, criterion_name: str):
        self.criterion_name = criterion_name
        super().__init__(f"Falta la puntuación del criterio: {criterion_name}")


class UnknownCriterion(ValidationError):
    code = "unknown_criterion"

    def __init__(self, criterion_key):
        self.criterion_key = criterion_key
        super().__init__(f"El criterio {criterion_key!r} no pertenece a esta etapa.")


class InvalidScoreValue(ValidationError):
    code = "invalid_score_value"

    def __init__(self, criterion_name: str, value):
        self.criterion_name = criterion_name
        self.value = value
        super().__init__(f"Puntuación no numérica para {criterion_name}: {value!r}")


class ScoreOutOfRange(ValidationError):
    code = "score_out_of_range"

    def __init__(self, criterion_name: str, value, min_score, max_score):
        self.criterion_name = criterion_name
        self.value = value
        self.min_score = min_score
        self.max_score = max_score
        super().__init__(
            f"La puntuación de {criterion_name} ({value}) está fuera del rango "
            f"[{min_score if min_score is not None else '-∞'}, {max_score if max_score is not None else '∞'}]."
        )


class EvaluatorNotAssigned(ValidationError):
    code = "evaluator_not_assigned"

    def __init__(self, evaluator_id, competition_id):
        self.evaluator_id = evaluator_id
        self.competition_id = competition_id
        super().__init__(
            f"El evaluador {evaluator_id} no tiene asignación en la competencia {competition_id}."
        )


# ---------------------------
# Conflictos
# ---------------------------
class ConflictError(EvaluationError):
    code = "conflict"


class DuplicateScore(ConflictError):
    code = "duplicate_score"

    def __init__(self, submission_id, stage_id, evaluator_id):
        self.submission_id = submission_id
        self.stage_id = stage_id
        self.evaluator_id = evaluator_id
        super().__init__(
            f"El evaluador {evaluator_id} ya puntuó la postulación {submission_id} en la etapa {stage_id}; "
            "usa revise_score para modificarla."
        )


class SlotAlreadyBooked(ConflictError):
    code = "slot_already_booked"

    def __init__(self, slot_id):
        self.slot_id = slot_id
        super().__init__(f"El horario {slot_id} ya está reservado.")


class SubmissionAlreadyBooked(ConflictError):
    code = "submission_already_booked"

    def __init__(self, submission_id, stage_id):
        self.submission_id = submission_id
        self.stage_id = stage_id
        super().__init__(f"La postulación {submission_id} ya tiene un horario en la etapa {stage_id}.")


class StagesAlreadyConfigured(ConflictError):
    code = "stages_already_configured"

    def __init__(self, competition_id):
        self.competition_id = competition_id
        super().__init__(f"La competencia {competition_id} ya tiene etapas configuradas.")


# ---------------------------
# Configuración
# ---------------------------
class ConfigurationError(EvaluationError, django_exceptions.ImproperlyConfigured):
    code = "configuration_error"


class InvalidConfiguration(ConfigurationError):
    code = "invalid_configuration"


# ---------------------------
# No encontrado
# ---------------------------
class NotFoundError(EvaluationError, django_exceptions.ObjectDoesNotExist):
    code = "not_found"
    resource = "objeto"

    def __init__(self, pk):
        self.pk = pk
        super().__init__(f"No existe {self.resource} con id={pk}")


class CompetitionNotFound(NotFoundError):
    resource = "la competencia"


class SubmissionNotFound(NotFoundError):
    resource = "la postulación"


class StageNotFound(NotFoundError):
    resource = "la etapa"


class SlotNotFound(NotFoundError):
    resource = "el horario"


class ScoreNotFound(NotFoundError):
    resource = "la puntuación"
