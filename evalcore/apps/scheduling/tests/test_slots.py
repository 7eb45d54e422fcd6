from __future__ import annotations

import threading
from datetime import date, time

from django.db import connection
from django.test import TestCase, TransactionTestCase

from evalcore.apps.competitions.models import Competition, Submission
from evalcore.apps.competitions.services.setup import configure_stages
from evalcore.apps.core.exceptions import (
    SlotAlreadyBooked,
    SlotNotFound,
    StageNotFound,
    SubmissionAlreadyBooked,
    ValidationError,
)
from evalcore.apps.scheduling.models import InterviewSlot
from evalcore.apps.scheduling.services.slots import (
    SlotSpec,
    _bind_slot,
    book_slot,
    generate_slots,
    list_all,
    list_available,
)

STAGES = [
    {"name": "Revisión", "criteria": [{"name": "General"}]},
    {"name": "Entrevista", "criteria": [{"name": "Pitch"}]},
]


class GenerateSlotsTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition = Competition.objects.create(name="Cohorte 2026")
        cls.stage1, cls.stage2 = configure_stages(cls.competition.pk, STAGES)

    def test_from_mappings_and_specs(self):
        slots = generate_slots(
            self.stage2.pk,
            [
                {"date": "2026-03-02", "start_time": "11:00", "end_time": "11:30", "meeting_link": "https://meet.example.com/b"},
                SlotSpec(date=date(2026, 3, 2), start_time=time(10), end_time=time(10, 30)),
            ],
        )
        self.assertEqual(len(slots), 2)
        self.assertEqual([s.start_time for s in slots], [time(10), time(11)])
        self.assertEqual(InterviewSlot.objects.filter(stage=self.stage2).count(), 2)
        self.assertFalse(any(s.is_booked for s in slots))

    def test_invalid_range_writes_nothing(self):
        with self.assertRaises(ValidationError):
            generate_slots(
                self.stage2.pk,
                [
                    {"date": "2026-03-02", "start_time": "09:00", "end_time": "09:30"},
                    {"date": "2026-03-02", "start_time": "10:00", "end_time": "10:00"},
                ],
            )
        self.assertFalse(InterviewSlot.objects.exists())

    def test_missing_and_malformed_fields(self):
        with self.assertRaises(ValidationError):
            generate_slots(self.stage2.pk, [{"date": "2026-03-02", "start_time": "09:00"}])
        with self.assertRaises(ValidationError):
            generate_slots(self.stage2.pk, [{"date": "mañana", "start_time": "09:00", "end_time": "10:00"}])

    def test_empty_input(self):
        self.assertEqual(generate_slots(self.stage2.pk, []), [])

    def test_unknown_stage(self):
        with self.assertRaises(StageNotFound):
            generate_slots(999999, [])
        with self.assertRaises(StageNotFound):
            list_available(999999)


class BookSlotTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition = Competition.objects.create(name="Cohorte 2026")
        cls.stage1, cls.stage2 = configure_stages(cls.competition.pk, STAGES)
        cls.slot_a, cls.slot_b = generate_slots(
            cls.stage2.pk,
            [
                {"date": "2026-03-02", "start_time": "10:00", "end_time": "10:30"},
                {"date": "2026-03-02", "start_time": "10:30", "end_time": "11:00"},
            ],
        )
        cls.first = Submission.objects.create(competition=cls.competition, title="Acme", current_stage=2)
        cls.second = Submission.objects.create(competition=cls.competition, title="Globex", current_stage=2)

    def test_book_and_list(self):
        slot = book_slot(self.first.pk, self.slot_a.pk)
        self.assertEqual(slot.submission_id, self.first.pk)
        self.assertIsNotNone(slot.booked_at)

        self.assertEqual([s.pk for s in list_available(self.stage2.pk)], [self.slot_b.pk])
        everything = list_all(self.stage2.pk)
        self.assertEqual([s.pk for s in everything], [self.slot_a.pk, self.slot_b.pk])
        self.assertEqual(everything[0].submission, self.first)

    def test_slot_taken(self):
        book_slot(self.first.pk, self.slot_a.pk)
        with self.assertRaises(SlotAlreadyBooked):
            book_slot(self.second.pk, self.slot_a.pk)
        self.slot_a.refresh_from_db()
        self.assertEqual(self.slot_a.submission_id, self.first.pk)

    def test_one_slot_per_stage(self):
        book_slot(self.first.pk, self.slot_a.pk)
        with self.assertRaises(SubmissionAlreadyBooked):
            book_slot(self.first.pk, self.slot_b.pk)
        self.slot_b.refresh_from_db()
        self.assertFalse(self.slot_b.is_booked)

    def test_stale_read_loses(self):
        stale = InterviewSlot.objects.get(pk=self.slot_a.pk)
        book_slot(self.first.pk, self.slot_a.pk)
        # Quien leyó el horario libre antes de la reserva pierde en la escritura condicional
        with self.assertRaises(SlotAlreadyBooked):
            _bind_slot(stale, self.second)
        self.slot_a.refresh_from_db()
        self.assertEqual(self.slot_a.submission_id, self.first.pk)

    def test_stale_read_same_submission(self):
        stale = InterviewSlot.objects.get(pk=self.slot_b.pk)
        book_slot(self.first.pk, self.slot_a.pk)
        with self.assertRaises(SubmissionAlreadyBooked):
            _bind_slot(stale, self.first)
        self.assertEqual(InterviewSlot.objects.filter(submission=self.first).count(), 1)

    def test_submission_of_other_competition(self):
        other = Submission.objects.create(competition=Competition.objects.create(name="Otra"))
        with self.assertRaises(ValidationError):
            book_slot(other.pk, self.slot_a.pk)

    def test_unknown_slot(self):
        with self.assertRaises(SlotNotFound):
            book_slot(self.first.pk, 999999)


class ConcurrentBookingTest(TransactionTestCase):
    def test_only_one_booking_wins(self):
        competition = Competition.objects.create(name="Concurrencia")
        _, stage2 = configure_stages(competition.pk, STAGES)
        (slot,) = generate_slots(stage2.pk, [{"date": "2026-03-02", "start_time": "10:00", "end_time": "10:30"}])
        subs = [Submission.objects.create(competition=competition, current_stage=2) for _ in range(4)]

        barrier = threading.Barrier(len(subs))
        outcomes = []

        def attempt(submission_id):
            try:
                barrier.wait()
                book_slot(submission_id, slot.pk)
                outcomes.append("ok")
            except SlotAlreadyBooked:
                outcomes.append("taken")
            finally:
                connection.close()

        threads = [threading.Thread(target=attempt, args=(s.pk,)) for s in subs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count("ok"), 1)
        self.assertEqual(outcomes.count("taken"), len(subs) - 1)
        slot.refresh_from_db()
        self.assertIn(slot.submission_id, [s.pk for s in subs])
