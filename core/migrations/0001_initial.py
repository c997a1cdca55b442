import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Setting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=100, unique=True)),
                ('value', models.CharField(max_length=255)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Setting',
                'verbose_name_plural': 'Settings',
            },
        ),
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('phone', models.CharField(max_length=30)),
                ('codeforces_handle', models.CharField(help_text='Handle or profile URL, ex: tourist or https://codeforces.com/profile/tourist', max_length=200, unique=True)),
                ('current_rating', models.IntegerField(default=0)),
                ('max_rating', models.IntegerField(default=0)),
                ('last_sync', models.DateTimeField(blank=True, null=True)),
                ('sync_hour', models.PositiveSmallIntegerField(default=2)),
                ('reminder_enabled', models.BooleanField(default=True)),
                ('reminder_sent_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Student',
                'verbose_name_plural': 'Students',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='ContestParticipation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('contest_id', models.IntegerField()),
                ('name', models.CharField(blank=True, max_length=300)),
                ('date', models.DateTimeField()),
                ('rank', models.IntegerField(default=0)),
                ('rating_before', models.IntegerField(default=0)),
                ('rating_after', models.IntegerField(default=0)),
                ('problems_unsolved', models.PositiveIntegerField(default=0)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contest_history', to='core.student')),
            ],
            options={
                'verbose_name': 'Contest participation',
                'verbose_name_plural': 'Contest history',
                'ordering': ['student', 'position'],
                'indexes': [models.Index(fields=['student', 'date'], name='core_contes_student_8c2f1e_idx')],
            },
        ),
        migrations.CreateModel(
            name='ProblemSolveEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0)),
                ('problem_id', models.CharField(help_text='Ex: 1980A', max_length=50)),
                ('solved_at', models.DateTimeField()),
                ('rating', models.IntegerField(default=0)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='problem_stats', to='core.student')),
            ],
            options={
                'verbose_name': 'Problem solve',
                'verbose_name_plural': 'Problem stats',
                'ordering': ['student', 'position'],
                'indexes': [models.Index(fields=['student', 'solved_at'], name='core_proble_student_4d9a7b_idx')],
            },
        ),
    ]
