import tempfile
from io import StringIO
from pathlib import Path

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone
from openpyxl import load_workbook

from mixcore.apps.competitions.models import Competition, CompetitionStatus as S, ScoringSource
from mixcore.apps.judging.models import SubmissionJudgment
from mixcore.apps.voting.models import Round1Assignment, SubmissionGroup, SubmissionVote
from mixcore.apps.voting.services.round2 import record_round2_vote, record_song_creator_picks, setup_round2_voting
from mixcore.apps.voting.services.tally import tally_round2_votes
from .test_round2 import play_round1


class SeedDemoCompetitionTest(TestCase):
    def test_peer_demo_with_simulated_votes(self):
        out = StringIO()
        call_command(
            "seed_demo_competition", "--title", "Demo Peer", "--submitters", "8", "--group-size", "4",
            "--simulate", "--skip-voters", "1", stdout=out,
        )
        competition = Competition.objects.get(slug="demo-peer")
        self.assertEqual(competition.status, S.ROUND1_OPEN)
        self.assertEqual(competition.submissions.count(), 8)
        self.assertEqual(
            set(SubmissionGroup.objects.filter(competition=competition).values_list("group_number", flat=True)),
            {1, 2},
        )
        self.assertEqual(Round1Assignment.objects.filter(competition=competition, has_voted=True).count(), 7)
        self.assertEqual(SubmissionVote.objects.filter(competition=competition).count(), 21)
        self.assertIn("7 votantes simulados", out.getvalue())

    def test_judge_demo(self):
        call_command(
            "seed_demo_competition", "--title", "Demo Judges", "--submitters", "8", "--group-size", "4",
            "--mode", "judge", "--simulate", stdout=StringIO(),
        )
        competition = Competition.objects.get(slug="demo-judges")
        self.assertEqual(competition.scoring_source, ScoringSource.JUDGE_RUBRIC)
        self.assertEqual(competition.judging_criteria.count(), 4)
        # 8 jueces × 4 mezclas del otro grupo
        self.assertEqual(SubmissionJudgment.objects.filter(competition=competition, is_completed=True).count(), 32)
        self.assertEqual(Round1Assignment.objects.filter(competition=competition, has_voted=True).count(), 8)

    def test_rejects_duplicates_and_tiny_demos(self):
        call_command("seed_demo_competition", "--title", "Demo Dup", "--submitters", "4", stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command("seed_demo_competition", "--title", "Demo Dup", "--submitters", "4", stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command("seed_demo_competition", "--title", "Demo Tiny", "--submitters", "3", stdout=StringIO())


class TallyRound1CommandTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        call_command(
            "seed_demo_competition", "--title", "Demo Tally", "--submitters", "8", "--group-size", "4",
            "--simulate", stdout=StringIO(),
        )
        cls.competition = Competition.objects.get(slug="demo-tally")

    def test_tally_prints_groups(self):
        out = StringIO()
        call_command("tally_round1", self.competition.slug, stdout=out)
        text = out.getvalue()
        self.assertIn("Grupo 1", text)
        self.assertIn("Grupo 2", text)
        self.assertIn("4 mezclas avanzan", text)
        self.assertEqual(Competition.objects.get(pk=self.competition.pk).status, S.ROUND1_TALLYING)

    def test_unknown_slug(self):
        with self.assertRaises(CommandError):
            call_command("tally_round1", "no-existe", stdout=StringIO())

    def test_locked_competition_is_reported(self):
        Competition.objects.filter(pk=self.competition.pk).update(lock_owner="x", locked_at=timezone.now())
        with self.assertRaises(CommandError):
            call_command("tally_round1", self.competition.slug, stdout=StringIO())


class ExportResultsXlsxTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.competition, cls.s = play_round1()
        setup_round2_voting(cls.competition.pk)
        record_song_creator_picks(cls.competition.pk, [cls.s[1].pk], comments={cls.s[1].pk: "Gran low-end"})

    def _export(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        path = Path(tmp.name) / "results.xlsx"
        call_command("export_results_xlsx", self.competition.slug, "--output", str(path), stdout=StringIO())
        return load_workbook(filename=str(path), data_only=True)

    def test_round1_only_while_round2_is_open(self):
        wb = self._export()
        self.assertEqual(wb.sheetnames, ["Ronda 1"])
        rows = list(wb["Ronda 1"].iter_rows(values_only=True))
        self.assertEqual(rows[0][:3], ("group_number", "rank_in_group", "submission_id"))
        self.assertEqual(len(rows), 7)
        first = next(r for r in rows[1:] if r[1] == 1)
        self.assertEqual((first[2], first[5], first[9]), (self.s[0].pk, 15, "SI"))

    def test_full_export_after_round2(self):
        for voter in (3, 4, 5):
            record_round2_vote(self.competition.pk, self.s[voter].user_id, self.s[1].pk)
        tally_round2_votes(self.competition.pk)

        wb = self._export()
        self.assertEqual(wb.sheetnames, ["Ronda 1", "Finalistas", "Picks"])
        finalists = list(wb["Finalistas"].iter_rows(min_row=2, values_only=True))
        self.assertEqual(len(finalists), 3)
        self.assertEqual((finalists[0][0], finalists[0][1], finalists[0][4], finalists[0][6]), (1, self.s[1].pk, 3, "SI"))
        picks = list(wb["Picks"].iter_rows(min_row=2, values_only=True))
        self.assertEqual(picks, [(1, self.s[1].pk, self.s[1].mix_title, "Gran low-end")])

    def test_without_groups(self):
        Competition.objects.create(title="Sin grupos")
        with self.assertRaises(CommandError):
            call_command("export_results_xlsx", "sin-grupos", stdout=StringIO())
