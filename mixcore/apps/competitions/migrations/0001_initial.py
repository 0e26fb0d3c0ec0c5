from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # 1) Competencia
        migrations.CreateModel(
            name='Competition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('slug', models.SlugField(max_length=220, unique=True)),
                ('description', models.TextField(blank=True)),
                ('song_creator', models.CharField(blank=True, help_text='Autor de la canción original; puede registrar picks en Ronda 2.', max_length=160)),
                ('status', models.CharField(choices=[('UPCOMING', 'Próxima'), ('OPEN_FOR_SUBMISSIONS', 'Recibiendo mezclas'), ('ROUND1_SETUP', 'Ronda 1 · preparación'), ('ROUND1_OPEN', 'Ronda 1 · votación abierta'), ('ROUND1_TALLYING', 'Ronda 1 · conteo'), ('ROUND2_SETUP', 'Ronda 2 · preparación'), ('ROUND2_OPEN', 'Ronda 2 · votación abierta'), ('ROUND2_TALLYING', 'Ronda 2 · conteo'), ('REQUIRES_MANUAL_WINNER', 'Empate · requiere selección manual'), ('COMPLETED', 'Finalizada'), ('ARCHIVED', 'Archivada'), ('CANCELLED', 'Cancelada')], default='UPCOMING', max_length=32)),
                ('start_date', models.DateTimeField(blank=True, null=True)),
                ('submission_deadline', models.DateTimeField(blank=True, null=True)),
                ('round1_voting_end_date', models.DateTimeField(blank=True, null=True)),
                ('round2_voting_end_date', models.DateTimeField(blank=True, null=True)),
                ('completed_date', models.DateTimeField(blank=True, null=True)),
                ('round1_advancement_count', models.PositiveIntegerField(default=2, help_text='Cuántas mezclas avanzan por grupo a la Ronda 2.', validators=[django.core.validators.MinValueValidator(1)])),
                ('scoring_source', models.CharField(choices=[('PEER_BALLOT', 'Votos entre participantes (3/2/1)'), ('JUDGE_RUBRIC', 'Rúbrica de jueces')], default='PEER_BALLOT', max_length=16)),
                ('round2_voter_policy', models.CharField(choices=[('ROUND1_VOTERS', 'Solo quienes votaron en Ronda 1'), ('ALL_SUBMITTERS', 'Todos los participantes no descalificados')], default='ROUND1_VOTERS', max_length=16)),
                ('song_creator_tiebreak', models.BooleanField(default=False, help_text='Si está activo, el pick #1 del autor desempata la Ronda 2.')),
                ('judging_score_max', models.DecimalField(decimal_places=2, default=Decimal('10.00'), help_text='Escala del puntaje general de la rúbrica (0..max).', max_digits=6)),
                ('lock_owner', models.CharField(blank=True, default='', editable=False, max_length=64)),
                ('locked_at', models.DateTimeField(blank=True, editable=False, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('organizer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='organized_competitions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('-created_at', 'title'),
            },
        ),
        migrations.AddConstraint(
            model_name='competition',
            constraint=models.CheckConstraint(condition=models.Q(('round1_advancement_count__gte', 1)), name='competition_advancement_count_gte_1'),
        ),
        # 2) Submission (una por usuario y competencia)
        migrations.CreateModel(
            name='Submission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('mix_title', models.CharField(max_length=200)),
                ('mix_description', models.TextField(blank=True)),
                ('submitted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('is_disqualified', models.BooleanField(default=False)),
                ('advanced_to_round2', models.BooleanField(default=False)),
                ('is_eligible_for_round1_voting', models.BooleanField(default=True)),
                ('is_eligible_for_round2_voting', models.BooleanField(default=False)),
                ('is_winner', models.BooleanField(default=False)),
                ('feedback', models.TextField(blank=True, default='')),
                ('round1_score', models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ('round2_score', models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ('final_score', models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ('final_rank', models.PositiveIntegerField(blank=True, null=True)),
                ('competition', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submissions', to='competitions.competition')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='mix_submissions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('competition', 'id'),
            },
        ),
        migrations.AddConstraint(
            model_name='submission',
            constraint=models.UniqueConstraint(fields=('competition', 'user'), name='uniq_submission_competition_user'),
        ),
    ]
