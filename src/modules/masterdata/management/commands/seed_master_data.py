from __future__ import annotations

from django.core.management.base import BaseCommand

from modules.masterdata.constants import PolicyType, ReasonType
from modules.masterdata.models import Policy, Reason

SEED_REASONS = [
    ("CHANGED_MIND", ReasonType.CANCELLATION, "Customer changed their mind"),
    ("FOUND_CHEAPER", ReasonType.CANCELLATION, "Found a better price elsewhere"),
    ("DELAYED_DELIVERY", ReasonType.CANCELLATION, "Delivery is taking too long"),
    ("ORDERED_BY_MISTAKE", ReasonType.CANCELLATION, "Ordered by mistake"),
    ("DAMAGED", ReasonType.RETURN, "Item arrived damaged"),
    ("WRONG_ITEM", ReasonType.RETURN, "Wrong item delivered"),
    ("NOT_AS_DESCRIBED", ReasonType.RETURN, "Item not as described"),
    ("NO_LONGER_NEEDED", ReasonType.RETURN, "No longer needed"),
]

SEED_POLICIES = [
    ("Standard cancellation", PolicyType.CANCELLATION, None),
    ("30-day returns", PolicyType.RETURN, 30),
    ("7-day returns", PolicyType.RETURN, 7),
]


class Command(BaseCommand):
    help = "Seed cancellation/return reasons and policies."

    def handle(self, *args, **options):
        reasons = 0
        for code, reason_type, description in SEED_REASONS:
            _, created = Reason.objects.get_or_create(
                code=code,
                reason_type=reason_type,
                defaults={"description": description},
            )
            reasons += int(created)

        policies = 0
        for name, policy_type, window_days in SEED_POLICIES:
            _, created = Policy.objects.get_or_create(
                name=name,
                policy_type=policy_type,
                defaults={"window_days": window_days},
            )
            policies += int(created)

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed completed: reasons={reasons}, policies={policies}"
            )
        )
