from decimal import Decimal

from django.contrib.auth.models import Group
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase

from mixcore.apps.competitions.models import ScoringSource
from mixcore.apps.competitions.tests.helpers import make_competition
from mixcore.apps.judging.models import JudgingCriteria, ScoringType, SubmissionJudgment
from mixcore.apps.judging.services.rubric import (
    DEFAULT_MIX_RUBRIC,
    compute_overall_score,
    define_judging_criteria,
    validate_criteria_weights,
)


class OverallScoreTest(SimpleTestCase):
    def test_normalized_weighted_sum(self):
        criteria = [
            JudgingCriteria(pk=1, name="A", min_score=1, max_score=10, weight=Decimal("0.5")),
            JudgingCriteria(pk=2, name="B", min_score=1, max_score=5, weight=Decimal("0.5")),
        ]
        self.assertEqual(compute_overall_score({1: 10, 2: 3}, criteria, Decimal("10")), Decimal("7.50"))
        self.assertEqual(compute_overall_score({1: 1, 2: 1}, criteria, Decimal("10")), Decimal("0.00"))
        self.assertEqual(compute_overall_score({1: 10, 2: 5}, criteria, Decimal("100")), Decimal("100.00"))

    def test_rounds_to_two_decimals(self):
        criteria = [JudgingCriteria(pk=1, name="A", min_score=0, max_score=3, weight=Decimal("1"))]
        self.assertEqual(compute_overall_score({1: 1}, criteria, Decimal("10")), Decimal("3.33"))

    def test_radio_labels(self):
        c = JudgingCriteria(
            name="Stereo", scoring_type=ScoringType.RADIO_BUTTONS, min_score=1, max_score=4,
            weight=Decimal("1"), scoring_options=["Poor", "Fair", "Good", "Excellent"],
        )
        self.assertEqual(c.label_for(3), "Good")
        self.assertEqual(c.label_for(9), "9")


class DefineCriteriaTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition, cls.s = make_competition(4, scoring_source=ScoringSource.JUDGE_RUBRIC)

    def test_default_mix_rubric(self):
        rows = define_judging_criteria(self.competition.pk, DEFAULT_MIX_RUBRIC)
        self.assertEqual([r.name for r in rows], [c["name"] for c in DEFAULT_MIX_RUBRIC])
        self.assertEqual(validate_criteria_weights(self.competition), Decimal("1"))

    def test_redefining_replaces_rubric(self):
        define_judging_criteria(self.competition.pk, DEFAULT_MIX_RUBRIC)
        define_judging_criteria(self.competition.pk, [{"name": "Única", "weight": "1"}])
        self.assertEqual(
            list(JudgingCriteria.objects.filter(competition=self.competition).values_list("name", flat=True)),
            ["Única"],
        )

    def test_weights_must_sum_to_one(self):
        with self.assertRaises(ValidationError):
            define_judging_criteria(
                self.competition.pk,
                [{"name": "A", "weight": "0.5"}, {"name": "B", "weight": "0.4"}],
            )
        self.assertFalse(JudgingCriteria.objects.filter(competition=self.competition).exists())

    def test_radio_needs_one_label_per_value(self):
        with self.assertRaises(ValidationError):
            define_judging_criteria(
                self.competition.pk,
                [{
                    "name": "Stereo", "scoring_type": ScoringType.RADIO_BUTTONS,
                    "min_score": 1, "max_score": 4, "weight": "1", "scoring_options": ["Poor", "Good"],
                }],
            )

    def test_max_must_exceed_min(self):
        with self.assertRaises(ValidationError):
            define_judging_criteria(self.competition.pk, [{"name": "A", "min_score": 5, "max_score": 5, "weight": "1"}])

    def test_frozen_once_judged(self):
        define_judging_criteria(self.competition.pk, [{"name": "A", "weight": "1"}])
        SubmissionJudgment.objects.create(
            competition=self.competition, submission=self.s[0], judge=self.s[1].user
        )
        with self.assertRaises(ValidationError):
            define_judging_criteria(self.competition.pk, [{"name": "B", "weight": "1"}])

    def test_validate_without_criteria(self):
        with self.assertRaises(ValidationError):
            validate_criteria_weights(self.competition)


class JudgesGroupTest(TestCase):
    def test_group_created_after_migrate(self):
        self.assertTrue(Group.objects.filter(name="judges").exists())
