# Generated migration for ScheduledMessage.claimed_at

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("stampman", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="scheduledmessage",
            name="claimed_at",
            field=models.DateTimeField(
                blank=True,
                help_text="Momento en que un despachador lo pasó a enviando",
                null=True,
                verbose_name="tomado en",
            ),
        ),
    ]
