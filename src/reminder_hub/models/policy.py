"""Module policy gate decisions."""

from enum import Enum

from pydantic import BaseModel


class PolicyReason(str, Enum):
    """Why a module is or is not allowed to schedule."""

    ENABLED = "enabled"
    MODULE_DISABLED = "module_disabled"
    MODULE_NOTIFICATIONS_DISABLED = "module_notifications_disabled"
    POLICY_ERROR = "policy_error"


class ModulePolicyDecision(BaseModel):
    """Result of a single policy read. Never cached across calls."""

    module_id: str
    enabled: bool
    reason: PolicyReason
