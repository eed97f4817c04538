from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.service_order import NotificationOutbox
from app.services.email_service import OutgoingEmail, load_smtp_config, send_email
from app.utils.alerting import alert_tracker

logger = logging.getLogger(__name__)

CHANNEL_EMAIL = "email"
DEAD_LETTER_DELAY = timedelta(days=365)
# How long a claimed row stays invisible to other senders before it is retried.
CLAIM_LEASE = timedelta(minutes=10)


def _now_utc() -> datetime:
    # SQLite (used in CI/tests) stores timezone-aware datetimes as naive values.
    # Use a naive UTC "now" for SQLite to avoid naive/aware comparison crashes.
    settings = get_settings()
    if (settings.database_url or "").startswith("sqlite"):
        return datetime.now(timezone.utc).replace(tzinfo=None)
    return datetime.now(timezone.utc)


def _canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def _dedupe_key(*, channel: str, template_key: str, entity_type: str, entity_id: str, payload_json: Any) -> str:
    raw = _canonical_json(
        {
            "channel": channel,
            "template_key": template_key,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "payload": payload_json,
        }
    )
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    # Keep it human-readable and stable, but bounded.
    return f"{channel}:{template_key}:{entity_type}:{entity_id}:{digest[:16]}"


def enqueue_notification(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    channel: str,
    template_key: str,
    payload_json: dict[str, Any],
) -> Optional[int]:
    """
    Inserts a notification request into the outbox inside the caller's transaction.
    Returns the new row id, or None when an identical request is already queued.
    """
    dedupe = _dedupe_key(
        channel=channel,
        template_key=template_key,
        entity_type=entity_type,
        entity_id=entity_id,
        payload_json=payload_json,
    )

    values = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "channel": channel,
        "template_key": template_key,
        "payload_json": payload_json,
        "dedupe_key": dedupe,
        "status": "PENDING",
        "attempt_count": 0,
        "next_attempt_at": _now_utc(),
    }

    # Must not break the caller transaction: use ON CONFLICT DO NOTHING semantics where possible.
    dialect_name = db.get_bind().dialect.name
    table = NotificationOutbox.__table__

    if dialect_name == "postgresql":
        inserted = db.execute(
            pg_insert(table).values(**values).on_conflict_do_nothing(index_elements=["dedupe_key"])
        ).rowcount
    elif dialect_name == "sqlite":
        inserted = db.execute(sqlite_insert(table).values(**values).prefix_with("OR IGNORE")).rowcount
    else:
        # Fallback: check then insert (may still race).
        existing = db.execute(
            select(NotificationOutbox.id).where(NotificationOutbox.dedupe_key == dedupe)
        ).scalar_one_or_none()
        inserted = 0
        if existing is None:
            inserted = db.execute(insert(table).values(**values)).rowcount

    if not inserted:
        logger.info("Notification already queued dedupe_key=%s", dedupe)
        return None
    return db.execute(
        select(NotificationOutbox.id).where(NotificationOutbox.dedupe_key == dedupe)
    ).scalar_one()


def _compute_backoff(attempt_count: int) -> timedelta:
    # 1m, 2m, 4m, 8m, ... capped to 60m
    seconds = 60 * (2 ** max(0, attempt_count - 1))
    seconds = max(60, min(3600, seconds))
    return timedelta(seconds=seconds)


def _send_email_payload(db: Session, payload: dict[str, Any]) -> None:
    to_email = str(payload.get("to") or "").strip()
    subject = str(payload.get("subject") or "").strip()
    html = str(payload.get("html") or "")
    if not to_email or not subject or not html:
        raise RuntimeError("Missing email fields (to/subject/html)")

    smtp = load_smtp_config(db)
    send_email(smtp, OutgoingEmail(to=to_email, subject=subject, html=html, text=str(payload.get("text") or "")))


def _attempt(
    db: Session,
    row: NotificationOutbox,
    *,
    now: datetime,
    max_attempts: int,
    sender: Callable[[Session, dict[str, Any]], None],
) -> bool:
    row.attempt_count = int(row.attempt_count or 0) + 1
    try:
        if row.channel != CHANNEL_EMAIL:
            raise RuntimeError(f"Unsupported channel: {row.channel}")
        sender(db, row.payload_json or {})
    except Exception as exc:
        row.last_error = str(exc)[:2000]
        if int(row.attempt_count) >= int(max_attempts):
            row.status = "FAILED"
            row.next_attempt_at = now + DEAD_LETTER_DELAY
            logger.error(
                "Notification dead-lettered id=%s template=%s attempts=%s: %s",
                row.id,
                row.template_key,
                row.attempt_count,
                exc,
            )
            alert_tracker.record("NOTIFICATION_DEAD_LETTERED", {"template": row.template_key})
        else:
            row.status = "RETRY"
            row.next_attempt_at = now + _compute_backoff(int(row.attempt_count))
            logger.warning(
                "Notification send failed id=%s attempt=%s, retry at %s: %s",
                row.id,
                row.attempt_count,
                row.next_attempt_at,
                exc,
            )
        return False

    row.status = "SENT"
    row.sent_at = now
    row.last_error = None
    return True


def _claim(db: Session, outbox_id: int, *, now: datetime, due_only: bool) -> bool:
    """
    Moves one row to SENDING and commits, so no other session can pick it up.
    A SENDING row whose lease has run out counts as abandoned and may be claimed again.
    """
    claimable = or_(
        NotificationOutbox.status.in_(["PENDING", "RETRY"]),
        and_(NotificationOutbox.status == "SENDING", NotificationOutbox.next_attempt_at <= now),
    )
    criteria = [NotificationOutbox.id == outbox_id, claimable]
    if due_only:
        criteria.append(NotificationOutbox.next_attempt_at <= now)

    result = db.execute(
        update(NotificationOutbox)
        .where(*criteria)
        .values(status="SENDING", next_attempt_at=now + CLAIM_LEASE)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def _due_rows_stmt(db: Session, *, now: datetime, batch_size: int):
    stmt = (
        select(NotificationOutbox.id)
        .where(
            NotificationOutbox.status.in_(["PENDING", "RETRY", "SENDING"]),
            NotificationOutbox.next_attempt_at <= now,
        )
        .order_by(NotificationOutbox.next_attempt_at.asc())
        .limit(int(max(1, batch_size)))
    )
    # SQLite (CI/tests) does not support `SELECT ... FOR UPDATE`.
    if db.get_bind().dialect.name == "postgresql":
        stmt = stmt.with_for_update(skip_locked=True)
    return stmt


def process_notification_outbox_once(
    db: Session,
    *,
    batch_size: int = 50,
    max_attempts: int = 5,
    sender: Callable[[Session, dict[str, Any]], None] = _send_email_payload,
) -> int:
    """
    Processes due notifications.
    Each row is claimed and committed before sending; rows claimed elsewhere are skipped.
    Returns number of successfully SENT items.
    """
    now = _now_utc()
    due_ids = db.execute(_due_rows_stmt(db, now=now, batch_size=batch_size)).scalars().all()

    sent = 0
    processed = 0
    for outbox_id in due_ids:
        if not _claim(db, outbox_id, now=now, due_only=True):
            continue
        processed += 1
        row = db.get(NotificationOutbox, outbox_id)
        if _attempt(db, row, now=_now_utc(), max_attempts=max_attempts, sender=sender):
            sent += 1
        db.commit()

    if processed:
        logger.info("Notification outbox processed: sent=%s total=%s", sent, processed)
    return sent


def dispatch_notification(
    session_factory: Callable[[], Session],
    outbox_id: int,
    *,
    sender: Callable[[Session, dict[str, Any]], None] = _send_email_payload,
) -> bool:
    """
    Immediate attempt for one queued row, run after the creating request has committed.
    Never raises: failures stay on the row for the worker to retry.
    """
    db = session_factory()
    try:
        if not _claim(db, outbox_id, now=_now_utc(), due_only=False):
            return False
        row = db.get(NotificationOutbox, outbox_id)
        ok = _attempt(
            db,
            row,
            now=_now_utc(),
            max_attempts=get_settings().notification_worker_max_attempts,
            sender=sender,
        )
        db.commit()
        if ok:
            logger.info("Notification sent id=%s template=%s", row.id, row.template_key)
        return ok
    except Exception:
        db.rollback()
        logger.exception("Notification dispatch failed id=%s", outbox_id)
        return False
    finally:
        db.close()
