import logging
from functools import wraps

from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify, abort
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from . import auth, complaints, laundry, lost_found, notifications
from .exceptions import LaundryError, NotFoundError
from .models import db, ORDER_STATUSES, CLOTH_CATEGORIES, LOST_ITEM_STATUSES

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/admin')

ADMIN_TABS = ('dashboard', 'orders', 'lost-found', 'complaints')


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not current_user.is_admin:
            flash("Access Denied: you don't have permission to access the admin panel.", 'danger')
            return redirect(url_for('main.dashboard'))
        return view(*args, **kwargs)
    return wrapped


def _count_by(records, attr):
    counts = {}
    for r in records:
        key = getattr(r, attr)
        counts[key] = counts.get(key, 0) + 1
    return counts


@bp.route('')
@admin_required
def panel():
    tab = request.args.get('tab', 'dashboard')
    if tab not in ADMIN_TABS:
        tab = 'dashboard'
    orders = laundry.get_all_orders()
    all_complaints, lost_items = [], []
    try:
        all_complaints = complaints.get_all_complaints()
        lost_items = lost_found.get_lost_items()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error loading admin data: %s', e)
        flash('Failed to load admin data. Please try again.', 'warning')
    stats = {
        'orders': _count_by(orders, 'status'),
        'complaints': _count_by(all_complaints, 'status'),
        'lost_items': _count_by(lost_items, 'status'),
        'total_orders': len(orders),
    }
    return render_template('admin.html', tab=tab, orders=orders, complaints=all_complaints,
                           lost_items=lost_items, stats=stats, lost_item_statuses=LOST_ITEM_STATUSES)


@bp.route('/users/search')
@admin_required
def search_users():
    users = laundry.search_users_by_email(request.args.get('email', ''))
    return jsonify([{'id': u.id, 'email': u.email, 'full_name': u.full_name} for u in users])


def _cloth_items_from(form):
    items = {}
    for name in CLOTH_CATEGORIES:
        try:
            items[name] = max(0, int(form.get(f'cloth_{name}') or 0))
        except ValueError:
            items[name] = 0
    return items


@bp.route('/orders/new', methods=['GET', 'POST'])
@admin_required
def new_order():
    users = laundry.get_all_users()
    if request.method == 'GET':
        return render_template('admin_order_new.html', users=users, statuses=ORDER_STATUSES,
                               categories=CLOTH_CATEGORIES, form={'bag_code': laundry.generate_bag_code()})

    f = request.form
    customer = lost_found.get_user(int(f['user_id'])) if (f.get('user_id') or '').isdigit() else None
    cloth_items = _cloth_items_from(f)
    items = laundry.total_items(cloth_items)
    status = f.get('status', 'pending')
    error = None
    if customer is None:
        error = 'Please select a user for this order.'
    elif items == 0:
        error = 'Please add at least one item to the order.'
    elif status not in ORDER_STATUSES:
        error = 'Please select a valid status.'
    if error:
        flash(error, 'warning')
        return render_template('admin_order_new.html', users=users, statuses=ORDER_STATUSES,
                               categories=CLOTH_CATEGORIES, form=f), 400

    try:
        cost = float(f.get('cost') or 0)
    except ValueError:
        cost = 0.0
    draft = {
        'user_id': customer.id,
        'user_email': customer.email,
        'items': items,
        'status': status,
        'progress': laundry.initial_progress(status),
        'estimated_completion_time': laundry.estimated_completion(),
        'notes': (f.get('notes') or '').strip() or None,
        'cost': cost,
        'cloth_items': cloth_items,
        'bag_code': (f.get('bag_code') or '').strip()[:4] or None,
    }
    try:
        order_id = laundry.create_order(draft)
    except (LaundryError, SQLAlchemyError):
        flash('Failed to create order. Please try again.', 'danger')
        return render_template('admin_order_new.html', users=users, statuses=ORDER_STATUSES,
                               categories=CLOTH_CATEGORIES, form=f), 500
    notifications.order_created(laundry.get_order(order_id))
    flash('The laundry order has been created successfully.', 'success')
    return redirect(url_for('admin.panel', tab='orders'))


@bp.route('/orders/<int:order_id>', methods=['GET', 'POST'])
@admin_required
def order_detail(order_id):
    order = laundry.get_order(order_id)
    if order is None:
        flash('Order Not Found', 'warning')
        return redirect(url_for('admin.panel', tab='orders'))

    if request.method == 'POST':
        f = request.form
        previous = order.status
        status = f.get('status', order.status)
        try:
            progress = max(0, min(100, int(f.get('progress') or 0)))
        except ValueError:
            progress = order.progress or 0
        if status == 'completed':
            progress = 100
        try:
            order = laundry.update_order(
                order_id, status=status, progress=progress,
                notes=(f.get('notes') or '').strip() or None,
                bag_code=(f.get('bag_code') or '').strip()[:4] or None,
            )
        except (LaundryError, SQLAlchemyError):
            flash('Failed to update order. Please try again.', 'danger')
            return redirect(url_for('admin.order_detail', order_id=order_id))
        notifications.order_status_changed(order, previous)
        flash('Order Updated', 'success')
        return redirect(url_for('admin.order_detail', order_id=order_id))

    customer = lost_found.get_user(order.user_id)
    return render_template('admin_order_detail.html', order=order, customer=customer,
                           statuses=ORDER_STATUSES)


@bp.route('/orders/<int:order_id>/delete', methods=['POST'])
@admin_required
def delete_order(order_id):
    try:
        laundry.delete_order(order_id)
    except SQLAlchemyError:
        flash('Failed to delete order. Please try again.', 'danger')
        return redirect(url_for('admin.order_detail', order_id=order_id))
    flash('Order deleted', 'info')
    return redirect(url_for('admin.panel', tab='orders'))


@bp.route('/complaints/<int:complaint_id>/respond', methods=['POST'])
@admin_required
def respond_complaint(complaint_id):
    response = (request.form.get('response') or '').strip()
    status = request.form.get('status', 'in-progress')
    if not response:
        flash('Please enter a response.', 'warning')
        return redirect(url_for('admin.panel', tab='complaints'))
    try:
        complaint = complaints.update_complaint_status(complaint_id, status, response)
    except NotFoundError:
        abort(404)
    except (LaundryError, SQLAlchemyError):
        flash('Failed to send response. Please try again.', 'danger')
        return redirect(url_for('admin.panel', tab='complaints'))
    notifications.complaint_answered(complaint)
    flash('Your response has been sent to the user.', 'success')
    return redirect(url_for('admin.panel', tab='complaints'))


@bp.route('/lost-found/<int:item_id>/status', methods=['POST'])
@admin_required
def update_lost_item(item_id):
    status = request.form.get('status', 'found')
    try:
        item = lost_found.update_lost_item_status(item_id, status)
    except NotFoundError:
        abort(404)
    except (LaundryError, SQLAlchemyError):
        flash('Failed to update status. Please try again.', 'danger')
        return redirect(url_for('admin.panel', tab='lost-found'))
    notifications.lost_item_status_changed(item)
    flash(f'Item has been marked as {item.status}.', 'success')
    return redirect(url_for('admin.panel', tab='lost-found'))


@bp.route('/grant-admin', methods=['POST'])
@admin_required
def grant_admin():
    email = (request.form.get('email') or '').strip()
    if not email:
        flash('Please enter a valid email address.', 'warning')
        return redirect(url_for('admin.panel'))
    try:
        target = auth.grant_admin(current_user, email)
    except LaundryError as e:
        flash(str(e), 'danger')
    else:
        flash(f'Admin access has been granted to {target.email}.', 'success')
    return redirect(url_for('admin.panel'))
