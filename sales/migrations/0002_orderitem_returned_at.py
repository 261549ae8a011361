from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="orderitem",
            name="returned_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AlterField(
            model_name="orderhistory",
            name="action",
            field=models.CharField(
                choices=[
                    ("created", "Created"),
                    ("payment_added", "Payment Added"),
                    ("payment_paid", "Payment Paid"),
                    ("payment_canceled", "Payment Canceled"),
                    ("status_changed", "Status Changed"),
                    ("delivered", "Delivered"),
                    ("finished", "Finished"),
                    ("canceled", "Canceled"),
                    ("custody_added", "Custody Added"),
                    ("custody_returned", "Custody Returned"),
                    ("items_returned", "Items Returned"),
                    ("deleted", "Deleted"),
                ],
                max_length=32,
            ),
        ),
    ]
