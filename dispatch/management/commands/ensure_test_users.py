# dispatch/management/commands/ensure_test_users.py
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from dispatch.models import Facility, User

TEST_SET = [
    ("dispatcher1", User.ROLE_DISPATCHER),
    ("admin1", User.ROLE_ADMIN),
    ("driver1", User.ROLE_DRIVER),
    ("client1", User.ROLE_CLIENT),
    ("facility1", User.ROLE_FACILITY),
]


class Command(BaseCommand):
    help = "Ensure one test account per role exists with the given password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="dispatch-test-1")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        facility, _ = Facility.objects.get_or_create(name="Test Care Home")
        for username, role in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={
                    "role": role,
                    "email": f"{username}@example.com",
                    "password": password,
                    "is_active": True,
                    "facility": facility if role == User.ROLE_FACILITY else None,
                },
            )
            if not created:
                # reset password, role and active flag
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active", "updated_at"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
