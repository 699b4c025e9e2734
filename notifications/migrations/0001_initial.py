from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('students', '0001_initial'),
        ('lessons', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('LESSON_CANCELLED', 'Lesson cancelled'), ('LESSON_RESCHEDULED', 'Lesson rescheduled'), ('LESSON_CONFIRMED', 'Lesson confirmed'), ('BALANCE_NEGATIVE', 'Balance negative')], db_index=True, max_length=50)),
                ('message', models.TextField()),
                ('is_read', models.BooleanField(db_index=True, default=False)),
                ('is_resolved', models.BooleanField(db_index=True, default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('organization', models.ForeignKey(db_column='organization_id', on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='core.organization')),
                ('recipient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
                ('student', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='students.studentprofile')),
                ('lesson', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='lessons.lesson')),
            ],
            options={
                'verbose_name': 'Notification',
                'verbose_name_plural': 'Notifications',
                'db_table': 'notifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['type', 'is_read', 'is_resolved'], name='notif_type_read_resolved_idx'),
                    models.Index(fields=['student', 'is_resolved'], name='notif_student_resolved_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_resolved', False), ('type', 'BALANCE_NEGATIVE')), fields=('student', 'type'), name='unique_open_balance_alert_per_student'),
                ],
            },
        ),
    ]
