import random
from collections import Counter

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from mixcore.apps.competitions.models import Competition, CompetitionStatus as S
from mixcore.apps.competitions.tests.helpers import make_competition, open_round1
from mixcore.apps.voting.exceptions import CompetitionLocked, GroupingExists, VotingClosed, VotingConflict
from mixcore.apps.voting.models import Round1Assignment, SubmissionGroup
from mixcore.apps.voting.services.ballots import process_voter_submission
from mixcore.apps.voting.services.grouping import (
    assigned_group_for,
    clear_groups,
    create_groups_and_assign_voters,
    get_assigned_submissions_for_voter,
    group_count_for,
    partition_round_robin,
    regroup,
)


class GroupMathTest(SimpleTestCase):
    def test_group_count(self):
        self.assertEqual(group_count_for(40, 20), 2)
        self.assertEqual(group_count_for(39, 20), 1)  # N < 2×target → un solo grupo
        self.assertEqual(group_count_for(50, 20), 3)
        self.assertEqual(group_count_for(0, 20), 0)

    def test_round_robin_is_balanced(self):
        groups = partition_round_robin(list(range(1, 51)), 3)
        sizes = sorted(Counter(groups.values()).values())
        self.assertEqual(sizes, [16, 17, 17])

    def test_rotation_never_points_to_own_group(self):
        for g in range(1, 6):
            for own in range(1, g + 1):
                target = assigned_group_for(own, g)
                self.assertTrue(1 <= target <= g)
                if g > 1:
                    self.assertNotEqual(target, own)


class GroupingScenarioTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition, cls.submissions = make_competition(40)

    def test_forty_submissions_make_two_groups_of_twenty(self):
        groups = create_groups_and_assign_voters(self.competition.pk, target_group_size=20, rng=random.Random(1))
        self.assertEqual(groups, 2)

        sizes = Counter(
            SubmissionGroup.objects.filter(competition=self.competition).values_list("group_number", flat=True)
        )
        self.assertEqual(dict(sizes), {1: 20, 2: 20})

        assignments = Round1Assignment.objects.filter(competition=self.competition)
        self.assertEqual(assignments.count(), 40)
        for a in assignments:
            self.assertNotEqual(a.assigned_group_number, a.voter_group_number)
            self.assertFalse(a.has_voted)

        # Carga de revisores pareja entre grupos
        load = Counter(assignments.values_list("assigned_group_number", flat=True))
        self.assertEqual(dict(load), {1: 20, 2: 20})

        # Agregados nulos hasta el primer tally
        self.assertFalse(
            SubmissionGroup.objects.filter(competition=self.competition, total_points__isnull=False).exists()
        )

    def test_voter_never_sees_own_submission(self):
        create_groups_and_assign_voters(self.competition.pk, target_group_size=20, rng=random.Random(2))
        for s in self.submissions[:5]:
            listed = get_assigned_submissions_for_voter(self.competition.pk, s.user_id)
            self.assertEqual(len(listed), 20)
            self.assertNotIn(s.pk, [x.pk for x in listed])
            self.assertEqual([x.pk for x in listed], sorted(x.pk for x in listed))

    def test_refuses_to_overwrite_existing_groups(self):
        create_groups_and_assign_voters(self.competition.pk, target_group_size=20, rng=random.Random(3))
        with self.assertRaises(GroupingExists):
            create_groups_and_assign_voters(self.competition.pk, target_group_size=20)
        self.assertEqual(Round1Assignment.objects.filter(competition=self.competition).count(), 40)

    def test_clear_then_recreate(self):
        create_groups_and_assign_voters(self.competition.pk, target_group_size=20, rng=random.Random(4))
        self.assertEqual(clear_groups(self.competition.pk), 40)
        self.assertFalse(SubmissionGroup.objects.filter(competition=self.competition).exists())
        self.assertEqual(create_groups_and_assign_voters(self.competition.pk, target_group_size=10), 4)

    def test_regroup_replaces_groups(self):
        create_groups_and_assign_voters(self.competition.pk, target_group_size=20, rng=random.Random(5))
        self.assertEqual(regroup(self.competition.pk, target_group_size=10, rng=random.Random(5)), 4)
        self.assertEqual(SubmissionGroup.objects.filter(competition=self.competition).count(), 40)
        self.assertEqual(
            set(SubmissionGroup.objects.filter(competition=self.competition).values_list("group_number", flat=True)),
            {1, 2, 3, 4},
        )

    def test_same_seed_same_groups(self):
        create_groups_and_assign_voters(self.competition.pk, target_group_size=20, rng=random.Random(9))
        first = dict(SubmissionGroup.objects.filter(competition=self.competition).values_list("submission_id", "group_number"))
        regroup(self.competition.pk, target_group_size=20, rng=random.Random(9))
        second = dict(SubmissionGroup.objects.filter(competition=self.competition).values_list("submission_id", "group_number"))
        self.assertEqual(first, second)

    def test_locked_competition_fails_fast(self):
        Competition.objects.filter(pk=self.competition.pk).update(lock_owner="tally_round1:other", locked_at=timezone.now())
        with self.assertRaises(CompetitionLocked):
            create_groups_and_assign_voters(self.competition.pk, target_group_size=20)
        self.assertFalse(Round1Assignment.objects.filter(competition=self.competition).exists())

    def test_lock_is_released_after_failure(self):
        create_groups_and_assign_voters(self.competition.pk, target_group_size=20)
        with self.assertRaises(GroupingExists):
            create_groups_and_assign_voters(self.competition.pk, target_group_size=20)
        competition = Competition.objects.get(pk=self.competition.pk)
        self.assertIsNone(competition.locked_at)
        self.assertEqual(competition.lock_owner, "")

    def test_target_below_three_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_groups_and_assign_voters(self.competition.pk, target_group_size=2)


class GroupingGuardsTest(TestCase):
    def test_requires_four_eligible_submissions(self):
        competition, subs = make_competition(5)
        subs[0].is_disqualified = True
        subs[0].save()
        subs[1].is_eligible_for_round1_voting = False
        subs[1].save()
        with self.assertRaises(ValidationError):
            create_groups_and_assign_voters(competition.pk)

    def test_requires_setup_phase(self):
        competition, _ = make_competition(4, status=S.OPEN_FOR_SUBMISSIONS)
        with self.assertRaises(VotingClosed):
            create_groups_and_assign_voters(competition.pk)

    def test_single_group_when_few_submissions(self):
        competition, subs = make_competition(6)
        self.assertEqual(create_groups_and_assign_voters(competition.pk, target_group_size=20), 1)
        a = Round1Assignment.objects.get(competition=competition, voter=subs[0].user)
        self.assertEqual((a.voter_group_number, a.assigned_group_number), (1, 1))
        listed = get_assigned_submissions_for_voter(competition.pk, subs[0].user_id)
        self.assertEqual([s.pk for s in listed], [s.pk for s in subs[1:]])

    def test_unknown_voter_is_not_found(self):
        competition, _ = make_competition(4)
        open_round1(competition)
        with self.assertRaises(Round1Assignment.DoesNotExist):
            get_assigned_submissions_for_voter(competition.pk, 999999)

    def test_clear_refused_once_votes_exist(self):
        competition, subs = make_competition(4)
        open_round1(competition)
        voter = subs[0].user_id
        others = [s.pk for s in get_assigned_submissions_for_voter(competition.pk, voter)]
        process_voter_submission(competition.pk, voter, *others)
        with self.assertRaises(VotingConflict):
            clear_groups(competition.pk)
        self.assertEqual(Round1Assignment.objects.filter(competition=competition).count(), 4)
