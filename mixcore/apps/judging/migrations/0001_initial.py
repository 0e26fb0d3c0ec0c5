from decimal import Decimal

import django.core.validators
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
        # 1) Rúbrica
        migrations.CreateModel(
            name='JudgingCriteria',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=120)),
                ('description', models.TextField(blank=True)),
                ('scoring_type', models.CharField(choices=[('SLIDER', 'Slider'), ('STARS', 'Estrellas'), ('RADIO_BUTTONS', 'Opciones')], default='SLIDER', max_length=16)),
                ('min_score', models.IntegerField(default=1)),
                ('max_score', models.IntegerField(default=10)),
                ('weight', models.DecimalField(decimal_places=4, max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('1'))])),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('is_comment_required', models.BooleanField(default=False)),
                ('scoring_options', models.JSONField(blank=True, default=list, help_text='Etiquetas para RADIO_BUTTONS, una por valor entre min y max.')),
                ('competition', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='judging_criteria', to='competitions.competition')),
            ],
            options={
                'verbose_name_plural': 'judging criteria',
                'ordering': ('competition', 'display_order', 'id'),
            },
        ),
        migrations.AddConstraint(
            model_name='judgingcriteria',
            constraint=models.UniqueConstraint(fields=('competition', 'name'), name='uniq_criteria_name'),
        ),
        migrations.AddConstraint(
            model_name='judgingcriteria',
            constraint=models.CheckConstraint(condition=models.Q(('max_score__gt', models.F('min_score'))), name='criteria_max_gt_min'),
        ),
        # 2) Juicios
        migrations.CreateModel(
            name='SubmissionJudgment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('voting_round', models.PositiveSmallIntegerField(default=1)),
                ('overall_score', models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ('overall_comments', models.TextField(blank=True, default='')),
                ('is_completed', models.BooleanField(default=False)),
                ('judgment_time', models.DateTimeField(default=django.utils.timezone.now)),
                ('last_updated', models.DateTimeField(auto_now=True)),
                ('competition', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='judgments', to='competitions.competition')),
                ('submission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='judgments', to='competitions.submission')),
                ('judge', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submission_judgments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('competition', 'judge_id', 'submission_id'),
            },
        ),
        migrations.AddConstraint(
            model_name='submissionjudgment',
            constraint=models.UniqueConstraint(fields=('submission', 'judge', 'voting_round'), name='uniq_judgment_submission_judge_round'),
        ),
        # 3) Puntajes por criterio
        migrations.CreateModel(
            name='CriteriaScore',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('score', models.IntegerField()),
                ('comments', models.TextField(blank=True, default='')),
                ('score_time', models.DateTimeField(default=django.utils.timezone.now)),
                ('judgment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='criteria_scores', to='judging.submissionjudgment')),
                ('criteria', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scores', to='judging.judgingcriteria')),
            ],
            options={
                'ordering': ('judgment', 'criteria__display_order'),
            },
        ),
        migrations.AddConstraint(
            model_name='criteriascore',
            constraint=models.UniqueConstraint(fields=('judgment', 'criteria'), name='uniq_criteria_score'),
        ),
    ]
