from django.core.exceptions import ValidationError
from django.db.models import F
from django.test import TestCase

from mixcore.apps.competitions.models import Competition, ScoringSource, Submission
from mixcore.apps.competitions.tests.helpers import after_round1, make_competition, open_round1
from mixcore.apps.voting.exceptions import AlreadyVoted, VotingClosed
from mixcore.apps.voting.models import Round1Assignment, SubmissionVote
from mixcore.apps.voting.services.ballots import process_voter_submission
from mixcore.apps.voting.services.grouping import get_assigned_submissions_for_voter


class BallotTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition, cls.submissions = make_competition(6)
        open_round1(cls.competition)
        cls.voter = cls.submissions[0].user
        cls.candidates = [s.pk for s in get_assigned_submissions_for_voter(cls.competition.pk, cls.voter.pk)]

    def _assignment(self):
        return Round1Assignment.objects.get(competition=self.competition, voter=self.voter)

    def test_valid_ballot_writes_three_votes_and_marks_voted(self):
        first, second, third = self.candidates[:3]
        process_voter_submission(self.competition.pk, self.voter.pk, first, second, third)

        votes = SubmissionVote.objects.filter(competition=self.competition, voter=self.voter).order_by("rank")
        self.assertEqual(
            [(v.submission_id, v.rank, v.points, v.voting_round) for v in votes],
            [(first, 1, 3, 1), (second, 2, 2, 1), (third, 3, 1, 1)],
        )
        a = self._assignment()
        self.assertTrue(a.has_voted)
        self.assertIsNotNone(a.voting_completed_date)

    def test_second_ballot_is_rejected(self):
        process_voter_submission(self.competition.pk, self.voter.pk, *self.candidates[:3])
        with self.assertRaises(AlreadyVoted):
            process_voter_submission(self.competition.pk, self.voter.pk, *self.candidates[1:4])
        self.assertEqual(SubmissionVote.objects.filter(voter=self.voter).count(), 3)

    def test_concurrent_ballot_insert_is_already_voted(self):
        # Otra petición ya insertó sus 3 votos pero aún no marcó has_voted
        for rank, sid in enumerate(self.candidates[:3], start=1):
            SubmissionVote.objects.create(
                competition=self.competition, submission_id=sid, voter=self.voter, rank=rank, points=4 - rank
            )
        with self.assertRaises(AlreadyVoted):
            process_voter_submission(self.competition.pk, self.voter.pk, *self.candidates[1:4])
        self.assertEqual(SubmissionVote.objects.filter(voter=self.voter).count(), 3)
        self.assertFalse(self._assignment().has_voted)

    def test_duplicate_choices_write_nothing(self):
        a, b = self.candidates[:2]
        with self.assertRaises(ValidationError):
            process_voter_submission(self.competition.pk, self.voter.pk, a, a, b)
        self.assertFalse(SubmissionVote.objects.filter(voter=self.voter).exists())
        self.assertFalse(self._assignment().has_voted)

    def test_own_submission_is_rejected(self):
        own = self.submissions[0].pk
        with self.assertRaises(ValidationError):
            process_voter_submission(self.competition.pk, self.voter.pk, own, *self.candidates[:2])
        self.assertFalse(SubmissionVote.objects.filter(voter=self.voter).exists())

    def test_submission_outside_cohort_is_rejected(self):
        _, others = make_competition(4, title="Other")
        with self.assertRaises(ValidationError):
            process_voter_submission(self.competition.pk, self.voter.pk, others[0].pk, *self.candidates[:2])

    def test_voter_without_assignment_is_not_found(self):
        stranger = Submission.objects.get(pk=self.submissions[1].pk).user
        Round1Assignment.objects.filter(competition=self.competition, voter=stranger).delete()
        with self.assertRaises(Round1Assignment.DoesNotExist):
            process_voter_submission(self.competition.pk, stranger.pk, *self.candidates[:3])

    def test_closed_after_deadline(self):
        with self.assertRaises(VotingClosed):
            process_voter_submission(
                self.competition.pk, self.voter.pk, *self.candidates[:3], now=after_round1(self.competition)
            )

    def test_rubric_competitions_do_not_take_ballots(self):
        Competition.objects.filter(pk=self.competition.pk).update(scoring_source=ScoringSource.JUDGE_RUBRIC)
        with self.assertRaises(VotingClosed):
            process_voter_submission(self.competition.pk, self.voter.pk, *self.candidates[:3])

    def test_nobody_votes_for_themselves(self):
        for s in self.submissions:
            picks = [x.pk for x in get_assigned_submissions_for_voter(self.competition.pk, s.user_id)][:3]
            process_voter_submission(self.competition.pk, s.user_id, *picks)
        self.assertEqual(SubmissionVote.objects.filter(competition=self.competition).count(), 18)
        self.assertFalse(
            SubmissionVote.objects.filter(competition=self.competition, submission__user_id=F("voter_id")).exists()
        )
