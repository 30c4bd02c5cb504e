"""
Data migration to create the role groups of the ethics review office.

Groups:
- Researcher: submits proposals and follows their own applications
- Staff: secretariat moving applications through the pipeline
- Chairperson: chairs the review board, signs decision letters
- Admin: system administrators with full access
"""

from django.db import migrations

ROLES = [
    "Researcher",
    "Staff",
    "Chairperson",
    "Admin",
]


def create_role_groups(apps, schema_editor):
    """Create the role groups."""
    Group = apps.get_model("auth", "Group")

    for role_name in ROLES:
        Group.objects.get_or_create(name=role_name)


def remove_role_groups(apps, schema_editor):
    """Remove the role groups (reverse migration)."""
    Group = apps.get_model("auth", "Group")
    Group.objects.filter(name__in=ROLES).delete()


class Migration(migrations.Migration):
    """Create role groups."""

    dependencies = [
        ("users", "0001_initial"),
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.RunPython(create_role_groups, remove_role_groups),
    ]
