from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from evalcore.apps.competitions.models import Competition, Submission
from evalcore.apps.competitions.services.setup import assign_evaluator, configure_stages
from evalcore.apps.core.exceptions import CompetitionNotFound, InvalidConfiguration, StageNotFound
from evalcore.apps.judging.services.ledger import submit_score
from evalcore.apps.leaderboard.services.ranking import FINAL, LIVE, export_results, rank

User = get_user_model()


class DemoDayRankingTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition = Competition.objects.create(name="Demo Day 2026", kind=Competition.KIND_DEMO_DAY)
        (cls.stage,) = configure_stages(cls.competition.pk, [{"name": "Jurado", "criteria": [{"name": "Pitch"}]}])
        cls.criterion = cls.stage.criteria.get()
        cls.ana = User.objects.create_user(username="ana", password="Pass1234!", first_name="Ana", last_name="Ruiz")
        cls.beto = User.objects.create_user(username="beto", password="Pass1234!")
        for judge in (cls.ana, cls.beto):
            assign_evaluator(cls.competition.pk, judge.pk)

        t0 = timezone.now()
        cls.t1, cls.t2, cls.t3, cls.partial = [
            Submission.objects.create(
                competition=cls.competition, title=title, current_stage=1, submitted_at=t0 + timedelta(hours=offset)
            )
            for offset, title in enumerate(("T1", "T2", "T3", "Parcial"))
        ]
        cls.draft = Submission.objects.create(competition=cls.competition, title="Borrador", current_stage=1)

        for sub, value in ((cls.t1, 8), (cls.t2, 8), (cls.t3, 9), (cls.draft, 10)):
            for judge in (cls.ana, cls.beto):
                submit_score(sub.pk, cls.stage.pk, judge.pk, {cls.criterion.pk: value})
        submit_score(cls.partial.pk, cls.stage.pk, cls.ana.pk, {cls.criterion.pk: 10})

    def test_live_order_and_tie_break(self):
        ranked = rank(self.competition.pk)
        self.assertEqual([r.submission_id for r in ranked], [self.t3.pk, self.t1.pk, self.t2.pk])
        self.assertEqual([r.rank for r in ranked], [1, 2, 3])
        self.assertEqual(ranked[1].aggregate_score, ranked[2].aggregate_score)
        self.assertEqual(ranked[0].evaluator_count, 2)

    def test_live_writes_nothing(self):
        rank(self.competition.pk, mode=LIVE)
        self.assertFalse(Submission.objects.filter(rank__isnull=False).exists())
        self.competition.refresh_from_db()
        self.assertIsNone(self.competition.rankings_finalized_at)

    def test_final_persists_ranks(self):
        ranked = rank(self.competition.pk, mode=FINAL)
        self.assertEqual(len(ranked), 3)

        ranks = dict(Submission.objects.values_list("pk", "rank"))
        self.assertEqual(ranks[self.t3.pk], 1)
        self.assertEqual(ranks[self.t1.pk], 2)
        self.assertEqual(ranks[self.t2.pk], 3)
        self.assertIsNone(ranks[self.partial.pk])
        self.assertIsNone(ranks[self.draft.pk])
        self.t3.refresh_from_db()
        self.assertEqual(self.t3.aggregate_score, Decimal("9"))
        self.competition.refresh_from_db()
        self.assertIsNotNone(self.competition.rankings_finalized_at)

    def test_final_clears_cached_score_of_unranked(self):
        # Borrador y Parcial tenían agregado en caché antes del congelamiento
        self.assertIsNotNone(Submission.objects.get(pk=self.draft.pk).aggregate_score)
        rank(self.competition.pk, mode=FINAL)

        for sub in (self.partial, self.draft):
            sub.refresh_from_db()
            self.assertIsNone(sub.rank)
            self.assertIsNone(sub.aggregate_score)
        self.assertFalse(Submission.objects.filter(rank__isnull=True, aggregate_score__isnull=False).exists())

    def test_final_rerun_replaces_previous_ranks(self):
        rank(self.competition.pk, mode=FINAL)

        # Un tercer juez sube el denominador: solo T3 mantiene 75% de evaluadores
        carla = User.objects.create_user(username="carla", password="Pass1234!")
        assign_evaluator(self.competition.pk, carla.pk)
        submit_score(self.t3.pk, self.stage.pk, carla.pk, {self.criterion.pk: 6})

        ranked = rank(self.competition.pk, mode=FINAL)
        self.assertEqual([r.submission_id for r in ranked], [self.t3.pk])
        ranks = dict(Submission.objects.values_list("pk", "rank"))
        self.assertEqual(ranks[self.t3.pk], 1)
        self.assertIsNone(ranks[self.t1.pk])
        self.assertIsNone(ranks[self.t2.pk])
        self.t3.refresh_from_db()
        self.assertEqual(self.t3.aggregate_score, Decimal("8"))

    def test_export_results(self):
        results = export_results(self.competition.pk)
        self.assertEqual([r["title"] for r in results], ["T3", "T1", "T2"])
        labels = [e["evaluator_label"] for e in results[0]["evaluators"]]
        self.assertEqual(sorted(labels), ["Ana Ruiz", "beto"])
        self.assertEqual(results[0]["evaluators"][0]["per_criterion_scores"], {"Pitch": 9})

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            rank(self.competition.pk, mode="SNAPSHOT")

    def test_unknown_ids(self):
        with self.assertRaises(CompetitionNotFound):
            rank(999999)
        other = Competition.objects.create(name="Otra")
        (other_stage,) = configure_stages(other.pk, [{"name": "E1", "criteria": [{"name": "A"}]}])
        with self.assertRaises(StageNotFound):
            rank(self.competition.pk, stage_id=other_stage.pk)

    def test_competition_without_stages(self):
        empty = Competition.objects.create(name="Vacía")
        with self.assertRaises(InvalidConfiguration):
            rank(empty.pk)


class ApplicationRankingTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition = Competition.objects.create(name="Cohorte 2026")
        cls.stage1, cls.stage2 = configure_stages(
            cls.competition.pk,
            [
                {"name": "Revisión", "criteria": [{"name": "General"}]},
                {"name": "Entrevista", "criteria": [{"name": "Pitch"}]},
            ],
        )
        cls.judge = User.objects.create_user(username="eva", password="Pass1234!")
        t0 = timezone.now()
        cls.a = Submission.objects.create(competition=cls.competition, title="A", current_stage=2, submitted_at=t0)
        cls.b = Submission.objects.create(
            competition=cls.competition, title="B", current_stage=1, submitted_at=t0 + timedelta(minutes=5)
        )
        c1 = cls.stage1.criteria.get()
        c2 = cls.stage2.criteria.get()
        submit_score(cls.a.pk, cls.stage1.pk, cls.judge.pk, {c1.pk: 5})
        submit_score(cls.b.pk, cls.stage1.pk, cls.judge.pk, {c1.pk: 9})
        submit_score(cls.a.pk, cls.stage2.pk, cls.judge.pk, {c2.pk: 6})

    def test_defaults_to_last_stage(self):
        ranked = rank(self.competition.pk)
        self.assertEqual([r.submission_id for r in ranked], [self.a.pk])
        self.assertEqual(ranked[0].aggregate_score, Decimal("6"))

    def test_explicit_stage(self):
        ranked = rank(self.competition.pk, stage_id=self.stage1.pk)
        self.assertEqual([r.submission_id for r in ranked], [self.b.pk, self.a.pk])


class CloseScoresRankingTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition = Competition.objects.create(name="Puntajes cercanos")
        (cls.stage,) = configure_stages(cls.competition.pk, [{"name": "Revisión", "criteria": [{"name": "General"}]}])
        criterion = cls.stage.criteria.get()
        judges = [User.objects.create_user(username=f"eval{i}", password="Pass1234!") for i in range(2)]
        t0 = timezone.now()
        cls.early = Submission.objects.create(
            competition=cls.competition, title="Temprana", current_stage=1, submitted_at=t0
        )
        cls.late = Submission.objects.create(
            competition=cls.competition, title="Tardía", current_stage=1, submitted_at=t0 + timedelta(minutes=5)
        )
        for judge, early_value in zip(judges, ("7", "6.9999")):
            submit_score(cls.early.pk, cls.stage.pk, judge.pk, {criterion.pk: early_value})
            submit_score(cls.late.pk, cls.stage.pk, judge.pk, {criterion.pk: "7"})

    def test_rounded_tie_is_not_a_real_tie(self):
        ranked = rank(self.competition.pk)
        # Ambas se informan como 7.0000, pero 6.99995 < 7
        self.assertEqual([r.aggregate_score for r in ranked], [Decimal("7"), Decimal("7")])
        self.assertEqual([r.submission_id for r in ranked], [self.late.pk, self.early.pk])
