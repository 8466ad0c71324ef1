"""Master data kinds."""

from django.db import models


class ReasonType(models.TextChoices):
    CANCELLATION = "CANCELLATION", "Cancellation"
    RETURN = "RETURN", "Return"


class PolicyType(models.TextChoices):
    CANCELLATION = "CANCELLATION", "Cancellation"
    RETURN = "RETURN", "Return"
