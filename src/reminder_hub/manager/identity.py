"""Deterministic notification id allocation.

Each module owns a disjoint block of ids (see ``MODULE_ID_RANGES``). An id
is derived from a canonical signature string, so the same reminder always
maps to the same OS notification and re-scheduling replaces rather than
duplicates it.
"""

import hashlib
import logging
from datetime import datetime

from reminder_hub.models.module import MODULE_ID_RANGES

logger = logging.getLogger(__name__)

# Unknown modules hash into the full positive 31-bit space.
_FALLBACK_MODULUS = 2_147_483_647
_LEGACY_MASK = 0x7FFFFFFF


def stable_hash(value: str) -> int:
    """Signed 64-bit hash that is identical across processes.

    Python's built-in ``hash`` is salted per process, which would give the
    headless recovery run different ids than the foreground app.
    """
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def build_signature(
    module_id: str,
    entity_id: str,
    reminder_type: str,
    reminder_value: int | str,
    reminder_unit: str,
    scheduled_at: datetime | None = None,
) -> str:
    signature = f"{module_id}|{entity_id}|{reminder_type}|{reminder_value}|{reminder_unit}"
    if scheduled_at is not None:
        signature += f"|{scheduled_at:%Y%m%d}"
    return signature


def generate_notification_id(
    module_id: str,
    entity_id: str,
    reminder_type: str,
    reminder_value: int | str,
    reminder_unit: str,
    scheduled_at: datetime | None = None,
) -> int:
    """Derive the notification id for one reminder.

    Args:
        module_id: Owning module
        entity_id: Entity the reminder belongs to
        reminder_type: Reminder kind, e.g. ``before`` or ``at_time``
        reminder_value: Offset amount
        reminder_unit: Offset unit
        scheduled_at: When given, the date is folded into the signature so
            each occurrence of a recurring reminder gets its own id

    Returns:
        An id inside the module's range, or a positive 31-bit id for
        modules without a reserved range
    """
    signature = build_signature(
        module_id, entity_id, reminder_type, reminder_value, reminder_unit, scheduled_at
    )
    hashed = abs(stable_hash(signature))

    id_range = MODULE_ID_RANGES.get(module_id)
    if id_range is None:
        return hashed % _FALLBACK_MODULUS

    notification_id = id_range.start + hashed % id_range.size
    if not id_range.contains(notification_id):
        logger.warning(
            f"Notification id {notification_id} for {module_id} is outside "
            f"{id_range.start}-{id_range.end}"
        )
    return notification_id


def universal_notification_id(
    module_id: str,
    entity_id: str,
    definition_id: str,
    timing: str,
    timing_value: int,
    timing_unit: str,
) -> int:
    """Stable id for a universal definition. No date component."""
    return generate_notification_id(
        module_id, f"{entity_id}|{definition_id}", timing, timing_value, timing_unit
    )


def legacy_notification_id(definition_id: str) -> int:
    """Id older releases derived from a definition's own id."""
    return stable_hash(definition_id) & _LEGACY_MASK


def module_for_id(notification_id: int) -> str | None:
    """Infer the owning module from the reserved id ranges."""
    for module_id, id_range in MODULE_ID_RANGES.items():
        if id_range.contains(notification_id):
            return module_id
    return None


def is_in_module_range(module_id: str, notification_id: int) -> bool:
    id_range = MODULE_ID_RANGES.get(module_id)
    return id_range is not None and id_range.contains(notification_id)


def is_in_any_module_range(notification_id: int) -> bool:
    return module_for_id(notification_id) is not None
