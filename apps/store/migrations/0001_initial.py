from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="StoredDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("collection", models.CharField(max_length=64)),
                ("doc_id", models.CharField(max_length=64)),
                ("data", models.JSONField(default=dict)),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
            ],
            options={
                "verbose_name": "Document",
                "verbose_name_plural": "Documents",
                "ordering": ["collection", "-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="storeddocument",
            constraint=models.UniqueConstraint(
                fields=("collection", "doc_id"),
                name="unique_document_per_collection",
            ),
        ),
        migrations.AddIndex(
            model_name="storeddocument",
            index=models.Index(fields=["collection", "created_at"], name="store_doc_collection_created"),
        ),
    ]
