"""Read-only reference data consulted by the request workflows.

- ``Reason``: codes a customer may pick when requesting a cancellation or
  a return.  Inactive reasons stay in the table for historical requests.
- ``Policy``: cancellation/return rules.  ``window_days`` bounds how long
  after placement a cancellation, or after delivery a return, may be
  requested.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.masterdata.constants import PolicyType, ReasonType


class Reason(BaseModel):
    code = models.CharField(max_length=50)
    reason_type = models.CharField(max_length=20, choices=ReasonType.choices)
    description = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "reasons"
        ordering = ["reason_type", "code"]
        constraints = [
            models.UniqueConstraint(
                fields=["code", "reason_type"], name="reasons_code_type_uniq"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.reason_type}:{self.code}"


class Policy(BaseModel):
    name = models.CharField(max_length=100)
    policy_type = models.CharField(max_length=20, choices=PolicyType.choices)
    window_days = models.PositiveIntegerField(null=True, blank=True, default=None)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "policies"
        ordering = ["policy_type", "name"]
        verbose_name_plural = "policies"

    def __str__(self) -> str:
        return f"{self.policy_type}:{self.name}"
