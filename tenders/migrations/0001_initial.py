from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Tender",
            fields=[
                ("ocid", models.TextField(primary_key=True, serialize=False)),
                ("external_id", models.TextField(blank=True, db_column="id", null=True)),
                ("title", models.TextField()),
                ("description", models.TextField(blank=True, null=True)),
                ("procurement_method", models.TextField(blank=True, null=True)),
                ("procurement_method_details", models.TextField(blank=True, null=True)),
                ("main_procurement_category", models.TextField(blank=True, null=True)),
                ("status", models.TextField(blank=True, null=True)),
                ("published_date", models.DateTimeField(blank=True, null=True)),
                ("start_date", models.DateTimeField(blank=True, null=True)),
                ("end_date", models.DateTimeField(blank=True, null=True)),
                ("procuring_entity", models.JSONField(blank=True, null=True)),
                ("value", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "tenders",
                "ordering": ["-published_date", "ocid"],
            },
        ),
        migrations.CreateModel(
            name="TenderDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document_id", models.TextField(blank=True, null=True)),
                ("title", models.TextField(blank=True, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("url", models.TextField(blank=True, null=True)),
                ("format", models.TextField(blank=True, null=True)),
                ("date_published", models.DateTimeField(blank=True, null=True)),
                ("date_modified", models.DateTimeField(blank=True, null=True)),
                (
                    "tender",
                    models.ForeignKey(
                        db_column="tender_ocid",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="documents",
                        to="tenders.tender",
                    ),
                ),
            ],
            options={
                "db_table": "tender_documents",
                "ordering": ["id"],
            },
        ),
        migrations.AddConstraint(
            model_name="tenderdocument",
            constraint=models.UniqueConstraint(
                fields=("tender", "document_id"),
                name="tender_documents_tender_ocid_document_id_key",
            ),
        ),
    ]
