"""
Reconciliation of partial application updates into a held snapshot.

HTTP responses and push events both deliver *partial* views of the
Application aggregate ("only the two statuses that changed", "only the new
requirement"). ``merge`` folds such a partial into the snapshot a client
holds without dropping sibling data it already knows about, and reports
whether anything actually changed so callers can skip re-rendering.

Snapshots are plain JSON-shaped dicts. Nothing here mutates its inputs:
changed containers are copied, untouched ones are shared with the previous
snapshot, so ``next[key] is current[key]`` for every field the partial did
not modify.

Per-field rules:

* scalars are compared with ``!=`` and replaced;
* a singular entity (mapping with ``id``) changes when the id changes or,
  if both sides carry ``updated_at``, when that differs; it is replaced
  wholesale and ``None`` clears it;
* a list of identified items is upserted by ``id``: matched items are
  shallow-merged in place, unknown ones appended, nothing is dropped;
* anything else (plain objects, lists without ids) is compared
  structurally and replaced wholesale.

Structural comparison is ``==`` over mappings and sequences, so key order
never matters, except that booleans never equal numbers.
"""

from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

SENTINEL_ID = ""
VERSION_FIELD = "updated_at"

Snapshot = dict[str, Any]


def merge(current: Mapping[str, Any], partial: Mapping[str, Any]) -> tuple[Mapping[str, Any], bool]:
    """
    Fold ``partial`` into ``current``.

    Returns ``(next, changed)``. When nothing changed ``next`` is
    ``current`` itself.
    """
    merged: Snapshot | None = None

    for key, incoming in partial.items():
        if key in current:
            value, changed = merge_field(current[key], incoming)
        else:
            value, changed = incoming, True

        if changed:
            if merged is None:
                merged = dict(current)
            merged[key] = value

    if merged is None:
        return current, False
    return merged, True


def has_changes(current: Mapping[str, Any], partial: Mapping[str, Any]) -> bool:
    """True when merging ``partial`` would alter ``current``."""
    return merge(current, partial)[1]


def merge_field(existing: Any, incoming: Any) -> tuple[Any, bool]:
    """Merge one field value according to its shape."""
    if _is_list(existing) and _is_list(incoming) and _has_identified_items(existing, incoming):
        return merge_identified(existing, incoming)

    if _is_entity(existing) and _is_entity(incoming):
        if entity_changed(existing, incoming):
            return incoming, True
        return existing, False

    if values_differ(existing, incoming):
        return incoming, True
    return existing, False


def values_differ(existing: Any, incoming: Any) -> bool:
    """
    Structural ``!=`` over JSON-shaped values that also tells booleans
    from numbers (``True == 1`` in Python).
    """
    if isinstance(existing, Mapping) and isinstance(incoming, Mapping):
        return existing.keys() != incoming.keys() or any(
            values_differ(existing[key], incoming[key]) for key in existing
        )
    if _is_list(existing) and _is_list(incoming):
        return len(existing) != len(incoming) or any(
            values_differ(old, new) for old, new in zip(existing, incoming)
        )
    if isinstance(existing, bool) is not isinstance(incoming, bool):
        return True
    return existing != incoming


def entity_changed(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> bool:
    """
    Compare two versions of a singular entity.

    ``updated_at`` is authoritative when both sides carry it; without it the
    entities are compared field by field.
    """
    if existing.get("id") != incoming.get("id"):
        return True
    if existing.get(VERSION_FIELD) is not None and incoming.get(VERSION_FIELD) is not None:
        return existing[VERSION_FIELD] != incoming[VERSION_FIELD]
    return values_differ(existing, incoming)


def item_changed(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> bool:
    """
    Would shallow-merging ``incoming`` into ``existing`` alter it?

    Items sharing an ``updated_at`` are considered identical: the last
    applied payload wins only when its version token moved.
    """
    if existing.get(VERSION_FIELD) is not None and incoming.get(VERSION_FIELD) is not None:
        return existing[VERSION_FIELD] != incoming[VERSION_FIELD]
    return any(key not in existing or values_differ(existing[key], value) for key, value in incoming.items())


def merge_identified(existing: Sequence[Any], incoming: Sequence[Any]) -> tuple[list[Any], bool]:
    """
    Upsert ``incoming`` items into ``existing`` by ``id``.

    The incoming list is a patch, never a full replacement: items it does
    not mention are kept, and order is preserved with new items appended.
    """
    result = list(existing)
    positions = {
        item["id"]: index
        for index, item in enumerate(result)
        if _is_entity(item)
    }
    changed = False

    for item in incoming:
        if not _is_entity(item):
            if item not in result:
                result.append(item)
                changed = True
            continue

        index = positions.get(item["id"])
        if index is None:
            positions[item["id"]] = len(result)
            result.append(item)
            changed = True
        elif item_changed(result[index], item):
            result[index] = {**result[index], **item}
            changed = True

    if not changed:
        return existing, False
    return result, True


# Status and message helpers.
#
# Specialisations of the identified-list rule scoped to the statuses list
# or to the message list of one status. Each returns a new snapshot and
# leaves every other status untouched.


def add_status(application: Mapping[str, Any], status: Mapping[str, Any]) -> Snapshot:
    """Append a freshly created status to the tail of the pipeline."""
    statuses = list(application.get("statuses") or [])
    statuses.append(status)
    return {**application, "statuses": statuses}


def add_message(application: Mapping[str, Any], status_id: str, message: Mapping[str, Any]) -> Snapshot:
    """Append ``message`` to the thread of the status ``status_id``."""
    return _update_messages(
        application,
        status_id,
        lambda messages: [*messages, message],
    )


def replace_message(
    application: Mapping[str, Any],
    status_id: str,
    message: Mapping[str, Any],
    pending_id: str = SENTINEL_ID,
) -> Snapshot:
    """
    Swap the pending message ``pending_id`` for its confirmed version.

    The push event for the same message may have arrived first; the pending
    copy is then dropped and the pushed one kept.
    """

    def confirm(messages: list[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
        if any(m.get("id") == message.get("id") for m in messages if m.get("id") != pending_id):
            return [m for m in messages if m.get("id") != pending_id]
        return [message if m.get("id") == pending_id else m for m in messages]

    return _update_messages(application, status_id, confirm)


def remove_message(
    application: Mapping[str, Any],
    status_id: str,
    pending_id: str = SENTINEL_ID,
) -> Snapshot:
    """Drop the pending message ``pending_id`` after a failed round trip."""
    return _update_messages(
        application,
        status_id,
        lambda messages: [m for m in messages if m.get("id") != pending_id],
    )


def upsert_message(application: Mapping[str, Any], message: Mapping[str, Any]) -> tuple[Mapping[str, Any], bool]:
    """
    Merge a message pushed by the server into its status thread.

    The status is found through ``message["app_status_id"]``. A message
    already in the thread (a read-status update) is merged in place instead
    of appended twice.
    """
    status_id = message.get("app_status_id")
    statuses = application.get("statuses") or []

    for index, status in enumerate(statuses):
        if status.get("id") != status_id:
            continue
        messages, changed = merge_identified(status.get("messages") or [], [message])
        if not changed:
            return application, False
        updated = list(statuses)
        updated[index] = {**status, "messages": messages}
        return {**application, "statuses": updated}, True

    return application, False


def _update_messages(application: Mapping[str, Any], status_id: str, update) -> Snapshot:
    statuses = [
        {**status, "messages": update(status.get("messages") or [])}
        if status.get("id") == status_id
        else status
        for status in application.get("statuses") or []
    ]
    return {**application, "statuses": statuses}


def _is_list(value: Any) -> bool:
    return isinstance(value, list | tuple)


def _is_entity(value: Any) -> bool:
    return isinstance(value, Mapping) and "id" in value


def _has_identified_items(*lists: Sequence[Any]) -> bool:
    return any(_is_entity(item) for items in lists for item in items)
