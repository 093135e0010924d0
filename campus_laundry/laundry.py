"""
Order lifecycle: creation, lookup and status/progress transitions of laundry orders.

Reads are fail-soft: a database error is logged and turned into an empty
result. Writes log the error and re-raise so the caller can report it.
"""
import logging
import random
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import NotFoundError, ValidationError
from .models import (
    db, LaundryOrder, User, ORDER_STATUSES, ACTIVE_ORDER_STATUSES, CLOTH_CATEGORIES, utcnow,
)

logger = logging.getLogger(__name__)

ESTIMATED_TURNAROUND = timedelta(hours=24)

_INITIAL_PROGRESS = {'pending': 0, 'processing': 50, 'ready': 100, 'completed': None}

# fields callers may set through update_order
_UPDATABLE = {
    'user_id', 'user_email', 'items', 'status', 'progress', 'completed_at',
    'estimated_completion_time', 'notes', 'cost', 'cloth_items', 'bag_code',
}


def generate_bag_code():
    return str(random.randint(1000, 9999))


def initial_progress(status):
    return _INITIAL_PROGRESS.get(status)


def estimated_completion(now=None):
    return (now or utcnow()) + ESTIMATED_TURNAROUND


def empty_cloth_items():
    return {name: 0 for name in CLOTH_CATEGORIES}


def total_items(cloth_items):
    return sum(int(v) for v in (cloth_items or {}).values())


def _check_status(status):
    if status not in ORDER_STATUSES:
        raise ValidationError(f'Unknown order status: {status}')


def _sorted_newest_first(orders):
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


def _read_failed(what, exc):
    logger.error('Error getting %s: %s', what, exc)
    db.session.rollback()


def create_order(draft):
    """Insert a new order from ``draft`` (a dict of order fields) and return its id.

    The status is taken as given. The item count is not checked against the
    cloth item breakdown.
    """
    fields = {k: v for k, v in draft.items() if k in _UPDATABLE}
    _check_status(fields.get('status', 'pending'))
    now = utcnow()
    order = LaundryOrder(created_at=now, updated_at=now, **fields)
    try:
        db.session.add(order)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error creating order: %s', e)
        raise
    logger.info('Created order %s for user %s (%s)', order.id, order.user_id, order.status)
    return order.id


def get_order(order_id):
    try:
        return db.session.get(LaundryOrder, order_id)
    except SQLAlchemyError as e:
        _read_failed('order', e)
        return None


def get_user_orders(user_id):
    try:
        orders = LaundryOrder.query.filter_by(user_id=user_id).all()
    except SQLAlchemyError as e:
        _read_failed('user orders', e)
        return []
    return _sorted_newest_first(orders)


def get_all_orders():
    try:
        orders = LaundryOrder.query.all()
    except SQLAlchemyError as e:
        _read_failed('all orders', e)
        return []
    return _sorted_newest_first(orders)


def get_current_order(user_id):
    """Most recently created order of the user that is not completed yet, or None."""
    active = [o for o in get_user_orders(user_id) if o.status in ACTIVE_ORDER_STATUSES]
    return active[0] if active else None


def _load_for_write(order_id):
    order = db.session.get(LaundryOrder, order_id)
    if order is None:
        raise NotFoundError(f'Order {order_id} not found')
    return order


def update_order(order_id, **updates):
    unknown = set(updates) - _UPDATABLE
    if unknown:
        raise ValidationError(f'Cannot update order fields: {", ".join(sorted(unknown))}')
    if 'status' in updates:
        _check_status(updates['status'])
    now = utcnow()
    try:
        order = _load_for_write(order_id)
        for key, value in updates.items():
            setattr(order, key, value)
        order.updated_at = now
        if updates.get('status') == 'completed':
            if not updates.get('completed_at'):
                order.completed_at = now
            if updates.get('progress') is None:
                order.progress = 100
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error updating order %s: %s', order_id, e)
        raise
    return order


def update_order_progress(order_id, progress):
    """Set progress (clamped to 0..100). Reaching 100 marks the order ready, not completed."""
    progress = max(0, min(100, int(progress)))
    try:
        order = _load_for_write(order_id)
        order.progress = progress
        order.updated_at = utcnow()
        if progress >= 100:
            order.status = 'ready'
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error updating order progress %s: %s', order_id, e)
        raise
    return order


def delete_order(order_id):
    try:
        LaundryOrder.query.filter_by(id=order_id).delete()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error deleting order %s: %s', order_id, e)
        raise


def search_users_by_email(prefix):
    prefix = (prefix or '').strip()
    if not prefix:
        return []
    try:
        return User.query.filter(User.email.startswith(prefix, autoescape=True)).order_by(User.email).all()
    except SQLAlchemyError as e:
        _read_failed('users by email', e)
        return []


def get_all_users():
    try:
        return User.query.order_by(User.email).all()
    except SQLAlchemyError as e:
        _read_failed('all users', e)
        return []
