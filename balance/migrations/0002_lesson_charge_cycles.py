from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('balance', '0001_initial'),
    ]

    operations = [
        migrations.RemoveConstraint(
            model_name='balancetransaction',
            name='unique_lesson_charge',
        ),
        migrations.RemoveConstraint(
            model_name='balancetransaction',
            name='unique_lesson_refund',
        ),
        migrations.AddField(
            model_name='balancetransaction',
            name='lesson_cycle',
            field=models.PositiveIntegerField(blank=True, null=True),
        ),
        migrations.RunSQL(
            "UPDATE balance_transactions SET lesson_cycle = 0 "
            "WHERE type IN ('LESSON_CHARGE', 'LESSON_REFUND') AND lesson_id IS NOT NULL",
            reverse_sql=migrations.RunSQL.noop,
        ),
        migrations.AddConstraint(
            model_name='balancetransaction',
            constraint=models.UniqueConstraint(condition=models.Q(('type', 'LESSON_CHARGE')), fields=('lesson', 'lesson_cycle'), name='unique_lesson_charge_per_cycle'),
        ),
        migrations.AddConstraint(
            model_name='balancetransaction',
            constraint=models.UniqueConstraint(condition=models.Q(('type', 'LESSON_REFUND')), fields=('lesson', 'lesson_cycle'), name='unique_lesson_refund_per_cycle'),
        ),
    ]
