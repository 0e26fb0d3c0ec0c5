from django.test import TestCase
from django.urls import reverse

from mixcore.apps.competitions.tests.helpers import make_competition, open_round1
from mixcore.apps.voting.models import SubmissionVote
from mixcore.apps.voting.services.round2 import record_round2_vote, setup_round2_voting
from mixcore.apps.voting.services.tally import tally_round2_votes
from .test_round2 import play_round1


class Round1ViewsTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition, cls.s = make_competition(4)
        open_round1(cls.competition)
        cls.voter = cls.s[0].user

    def setUp(self):
        self.client.force_login(self.voter)

    def test_health(self):
        r = self.client.get(reverse("api_health"))
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["ok"])

    def test_login_required(self):
        self.client.logout()
        r = self.client.get(reverse("voting:assigned_submissions", args=[self.competition.slug]))
        self.assertEqual(r.status_code, 302)

    def test_assigned_submissions(self):
        r = self.client.get(reverse("voting:assigned_submissions", args=[self.competition.slug]))
        self.assertEqual(r.status_code, 200)
        ids = [item["id"] for item in r.json()["submissions"]]
        self.assertEqual(ids, [x.pk for x in self.s[1:]])

    def test_unknown_competition(self):
        r = self.client.get(reverse("voting:assigned_submissions", args=["no-existe"]))
        self.assertEqual(r.status_code, 404)

    def test_cast_ballot(self):
        url = reverse("voting:cast_round1_ballot", args=[self.competition.slug])
        body = {"first": self.s[1].pk, "second": self.s[2].pk, "third": self.s[3].pk}

        r = self.client.post(url, body, content_type="application/json")
        self.assertEqual(r.status_code, 201)
        self.assertEqual([v["points"] for v in r.json()["votes"]], [3, 2, 1])

        r = self.client.post(url, body, content_type="application/json")
        self.assertEqual(r.status_code, 400)
        self.assertFalse(r.json()["ok"])
        self.assertEqual(SubmissionVote.objects.filter(voter=self.voter).count(), 3)

    def test_ballot_form_post_and_missing_field(self):
        url = reverse("voting:cast_round1_ballot", args=[self.competition.slug])
        r = self.client.post(url, {"first": self.s[1].pk, "second": self.s[2].pk})
        self.assertEqual(r.status_code, 400)
        self.assertIn("third", r.json()["errors"])

    def test_ballot_requires_post(self):
        r = self.client.get(reverse("voting:cast_round1_ballot", args=[self.competition.slug]))
        self.assertEqual(r.status_code, 405)

    def test_results_not_available_yet(self):
        self.client.logout()
        r = self.client.get(reverse("voting:results", args=[self.competition.slug]))
        self.assertEqual(r.status_code, 400)


class Round2ViewsTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition, cls.s = play_round1()
        setup_round2_voting(cls.competition.pk)

    def test_ballot_lists_finalists(self):
        self.client.force_login(self.s[3].user)
        r = self.client.get(reverse("voting:round2_ballot", args=[self.competition.slug]))
        self.assertEqual(r.status_code, 200)
        data = r.json()
        self.assertTrue(data["eligible"])
        self.assertEqual([f["id"] for f in data["finalists"]], [x.pk for x in self.s[:3]])

    def test_vote_then_change(self):
        self.client.force_login(self.s[3].user)
        url = reverse("voting:cast_round2_vote", args=[self.competition.slug])

        r = self.client.post(url, {"submission": self.s[0].pk}, content_type="application/json")
        self.assertEqual(r.status_code, 201)

        r = self.client.post(url, {"submission": self.s[1].pk}, content_type="application/json")
        self.assertEqual(r.status_code, 400)

        r = self.client.post(url, {"submission": self.s[1].pk, "change": True}, content_type="application/json")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["vote"]["submission"], self.s[1].pk)

    def test_public_results(self):
        for voter in (3, 4):
            record_round2_vote(self.competition.pk, self.s[voter].user_id, self.s[2].pk)
        tally_round2_votes(self.competition.pk)

        r = self.client.get(reverse("voting:results", args=[self.competition.slug]))
        self.assertEqual(r.status_code, 200)
        results = r.json()["results"]
        self.assertEqual(results["winner_submission_id"], self.s[2].pk)
        self.assertEqual(results["total_round2_votes"], 2)
        self.assertEqual(results["finalists"][0]["round2_votes"], 2)
