from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="transferaction",
            name="action",
            field=models.CharField(
                choices=[
                    ("created", "Created"),
                    ("approved", "Approved"),
                    ("approved_items", "Approved Items"),
                    ("rejected", "Rejected"),
                    ("rejected_items", "Rejected Items"),
                    ("updated", "Updated"),
                ],
                max_length=32,
            ),
        ),
    ]
