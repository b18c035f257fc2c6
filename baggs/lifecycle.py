"""
Transfer lifecycle: state-machine stamping and worker bookkeeping.

``plan_transfer_update`` is a pure function. Given the stored transfer, a
validated change set and the acting user it returns a ``TransitionPlan``
describing every write the update implies. ``update_transfer`` loads and
locks the rows, authorizes the actor, and applies the plan in one database
transaction.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import select, update

from baggs import db
from baggs.errors import NotFound, ValidationError
from baggs.models import Notification, Transfer, Worker, utcnow
from baggs.policy import authorize

logger = logging.getLogger(__name__)

STATUS_NOTIFICATION_TTL = timedelta(days=7)


@dataclass
class WorkerPatch:
    worker_id: str
    is_available: bool
    status: str
    completed_jobs: int = 0


@dataclass
class TransitionPlan:
    transfer_id: str
    transfer_changes: dict
    worker_patches: List[WorkerPatch] = field(default_factory=list)
    notification: Optional[dict] = None
    worker_rating: Optional[dict] = None
    previous_worker_id: Optional[str] = None

    def folded_worker_patches(self) -> Dict[str, WorkerPatch]:
        """
        One patch per worker, in first-touched order.

        Later patches win for availability and status; completed-job
        increments accumulate.
        """
        folded = {}
        for patch in self.worker_patches:
            current = folded.get(patch.worker_id)
            if current is None:
                folded[patch.worker_id] = WorkerPatch(
                    patch.worker_id, patch.is_available, patch.status, patch.completed_jobs
                )
                continue
            current.is_available = patch.is_available
            current.status = patch.status
            current.completed_jobs += patch.completed_jobs
        return folded


def short_id(transfer_id):
    return str(transfer_id)[:6]


def status_notification(transfer_id, owner_id, status, actor_id, now, ttl=STATUS_NOTIFICATION_TTL):
    """Fields of the owner notification sent when a transfer changes status"""
    ref = short_id(transfer_id)
    return {
        'title': f'transfer Update: #{ref}',
        'message': f'Your transfer with ID #{ref} has been updated to {status}.',
        'type': 'info',
        'is_global': False,
        'target_user_ids': [owner_id],
        'created_by_id': actor_id,
        'expires_at': now + ttl,
        'send_now': True,
        'redirect_to': f'/my-transfers/{transfer_id}',
    }


def plan_transfer_update(transfer, changes, actor, now=None, notification_ttl=STATUS_NOTIFICATION_TTL):
    """
    Work out every write implied by applying ``changes`` to ``transfer``.

    ``transfer`` needs ``id``, ``user_id``, ``worker_id``, ``status`` and ``rating``;
    ``changes`` is a validated dict keyed by model attribute. Nothing is
    read from or written to the database here.
    """
    now = now or utcnow()
    changes = dict(changes)
    previous_worker_id = transfer.worker_id

    rating = changes.get('rating')

    new_worker_id = changes.get('worker_id')
    if new_worker_id is not None and new_worker_id == previous_worker_id:
        # Re-sending the current worker is not an assignment
        changes.pop('worker_id')
        new_worker_id = None
    reassigned = new_worker_id is not None

    requested = changes.get('status')
    if requested == 'completed':
        changes['completed_at'] = now
    if requested == 'cancelled':
        changes['cancelled_at'] = now
    if reassigned:
        changes['assigneed_at'] = now
        changes['status'] = 'in_progress'
        changes['accepted_at'] = now
        changes.pop('completed_at', None)
        changes.pop('cancelled_at', None)

    status = changes.get('status')
    if status == 'in_progress':
        changes['accepted_at'] = now
    if status == 'onTheWay':
        changes['on_the_way_at'] = now

    plan = TransitionPlan(
        transfer_id=transfer.id,
        transfer_changes=changes,
        previous_worker_id=previous_worker_id,
    )

    status_changed = status is not None and status != transfer.status
    if status_changed:
        plan.notification = status_notification(
            transfer.id, transfer.user_id, status, actor.id, now, notification_ttl
        )

    resulting_status = status or transfer.status
    if rating is not None and resulting_status != 'completed':
        raise ValidationError(errors=[
            {'field': 'rating', 'message': 'Rating is only allowed on completed transfers'}
        ])

    resulting_worker_id = new_worker_id or previous_worker_id
    patches = plan.worker_patches

    if previous_worker_id and reassigned:
        patches.append(WorkerPatch(previous_worker_id, True, 'Available'))
    if resulting_status == 'completed' and resulting_worker_id and status_changed:
        patches.append(WorkerPatch(resulting_worker_id, True, 'Available', completed_jobs=1))
    if resulting_status == 'in_progress' and resulting_worker_id:
        patches.append(WorkerPatch(resulting_worker_id, False, 'Assigned'))
    if status == 'cancelled' and resulting_worker_id:
        patches.append(WorkerPatch(resulting_worker_id, True, 'Available'))
    if status == 'onTheWay' and resulting_worker_id:
        patches.append(WorkerPatch(resulting_worker_id, False, 'OnTheWay'))
    if reassigned:
        patches.append(WorkerPatch(new_worker_id, False, 'Assigned'))

    # Only the first rating of a transfer counts towards the worker
    if rating is not None and resulting_worker_id and transfer.rating is None:
        plan.worker_rating = {
            'worker_id': resulting_worker_id,
            'rating': rating['rating'],
            'comment': rating.get('comment'),
        }

    return plan


def apply_plan(transfer, plan):
    """Stage every write of ``plan`` on the current session (no commit)"""
    transfer.apply(plan.transfer_changes)

    folded = plan.folded_worker_patches()
    if folded:
        # Row locks on the affected workers; no-op on SQLite
        db.session.execute(
            select(Worker.id).where(Worker.id.in_(list(folded))).with_for_update()
        ).all()

    for worker_id, patch in folded.items():
        values = {'is_available': patch.is_available, 'status': patch.status}
        if patch.completed_jobs:
            values['completed_jobs'] = Worker.completed_jobs + patch.completed_jobs
        db.session.execute(
            update(Worker).where(Worker.id == worker_id).values(**values),
            execution_options={'synchronize_session': False},
        )

    if plan.worker_rating:
        worker = db.session.get(Worker, plan.worker_rating['worker_id'], populate_existing=True)
        if worker is not None:
            worker.add_service_rating(
                plan.transfer_id, plan.worker_rating['rating'], plan.worker_rating['comment']
            )

    if plan.notification:
        fields = dict(plan.notification)
        db.session.add(Notification.for_users(fields.pop('target_user_ids'), **fields))


def update_transfer(transfer_id, changes, actor):
    """
    Apply a validated update to a transfer on behalf of ``actor``.

    Raises NotFound when the transfer does not exist and Forbidden when the
    actor is neither its owner nor an admin. Returns the refreshed transfer.
    """
    transfer = db.session.execute(
        select(Transfer).where(Transfer.id == transfer_id).with_for_update(of=Transfer)
    ).unique().scalar_one_or_none()
    if transfer is None:
        raise NotFound('Transfer not found')

    authorize(actor, 'transfer:update', transfer)

    ttl = current_app.config.get('STATUS_NOTIFICATION_TTL', STATUS_NOTIFICATION_TTL)
    plan = plan_transfer_update(transfer, changes, actor, notification_ttl=ttl)

    try:
        apply_plan(transfer, plan)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        'Transfer %s updated by %s: status=%s worker=%s (previous %s)',
        transfer.id, actor.id, transfer.status, transfer.worker_id, plan.previous_worker_id,
    )
    return transfer
