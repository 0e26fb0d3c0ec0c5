import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('competitions', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # 1) Asignaciones de Ronda 1
        migrations.CreateModel(
            name='Round1Assignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('voter_group_number', models.PositiveIntegerField(help_text='Grupo de la mezcla propia del votante.')),
                ('assigned_group_number', models.PositiveIntegerField(help_text='Grupo que el votante debe revisar.')),
                ('has_voted', models.BooleanField(default=False)),
                ('voting_completed_date', models.DateTimeField(blank=True, null=True)),
                ('competition', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='round1_assignments', to='competitions.competition')),
                ('voter', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='round1_assignments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('competition', 'voter_id'),
            },
        ),
        migrations.AddConstraint(
            model_name='round1assignment',
            constraint=models.UniqueConstraint(fields=('competition', 'voter'), name='uniq_round1_assignment_voter'),
        ),
        # 2) Grupos
        migrations.CreateModel(
            name='SubmissionGroup',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('group_number', models.PositiveIntegerField()),
                ('total_points', models.PositiveIntegerField(blank=True, null=True)),
                ('first_place_votes', models.PositiveIntegerField(blank=True, null=True)),
                ('second_place_votes', models.PositiveIntegerField(blank=True, null=True)),
                ('third_place_votes', models.PositiveIntegerField(blank=True, null=True)),
                ('rank_in_group', models.PositiveIntegerField(blank=True, null=True)),
                ('competition', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submission_groups', to='competitions.competition')),
                ('submission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='group_memberships', to='competitions.submission')),
            ],
            options={
                'ordering': ('competition', 'group_number', 'rank_in_group', 'submission_id'),
            },
        ),
        migrations.AddConstraint(
            model_name='submissiongroup',
            constraint=models.UniqueConstraint(fields=('competition', 'submission'), name='uniq_submission_group'),
        ),
        # 3) Votos
        migrations.CreateModel(
            name='SubmissionVote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rank', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('points', models.PositiveSmallIntegerField()),
                ('voting_round', models.PositiveSmallIntegerField(default=1)),
                ('vote_time', models.DateTimeField(default=django.utils.timezone.now)),
                ('comment', models.TextField(blank=True, default='')),
                ('competition', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='votes', to='competitions.competition')),
                ('submission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='votes', to='competitions.submission')),
                ('voter', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submission_votes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('competition', 'voting_round', 'voter_id', 'rank'),
            },
        ),
        migrations.AddConstraint(
            model_name='submissionvote',
            constraint=models.UniqueConstraint(fields=('submission', 'voter', 'voting_round'), name='uniq_vote_submission_voter_round'),
        ),
        migrations.AddConstraint(
            model_name='submissionvote',
            constraint=models.UniqueConstraint(condition=models.Q(('rank__isnull', False)), fields=('competition', 'voter', 'voting_round', 'rank'), name='uniq_vote_rank_slot'),
        ),
        migrations.AddConstraint(
            model_name='submissionvote',
            constraint=models.UniqueConstraint(condition=models.Q(('voting_round', 2)), fields=('competition', 'voter'), name='uniq_round2_vote_per_voter'),
        ),
        migrations.AddConstraint(
            model_name='submissionvote',
            constraint=models.CheckConstraint(condition=models.Q(('voting_round__in', (1, 2))), name='vote_round_1_or_2'),
        ),
        # 4) Picks del autor de la canción
        migrations.CreateModel(
            name='SongCreatorPick',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rank', models.PositiveSmallIntegerField()),
                ('comment', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('competition', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='song_creator_picks', to='competitions.competition')),
                ('submission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='song_creator_picks', to='competitions.submission')),
            ],
            options={
                'ordering': ('competition', 'rank'),
            },
        ),
        migrations.AddConstraint(
            model_name='songcreatorpick',
            constraint=models.UniqueConstraint(fields=('competition', 'rank'), name='uniq_song_creator_pick_rank'),
        ),
        migrations.AddConstraint(
            model_name='songcreatorpick',
            constraint=models.UniqueConstraint(fields=('competition', 'submission'), name='uniq_song_creator_pick_submission'),
        ),
    ]
