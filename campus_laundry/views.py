import logging

from flask import (
    Blueprint, render_template, request, redirect, url_for, flash, jsonify, abort, send_from_directory,
)
from flask_login import login_user, login_required, logout_user, current_user
from sqlalchemy.exc import SQLAlchemyError

from . import auth, complaints, laundry, lost_found, notifications
from .exceptions import AuthError, LaundryError, NotFoundError
from .models import db, ISSUE_TYPES, LOST_ITEM_TYPES
from .progress import can_advance, get_progress_watcher
from .storage import get_file_store

logger = logging.getLogger(__name__)

bp = Blueprint('main', __name__)

DASHBOARD_TABS = ('home', 'lost-found', 'support')


def _int_or_none(value):
    try:
        return int(value) if value not in (None, '') else None
    except (TypeError, ValueError):
        return None


@bp.route('/')
def index():
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))
    return render_template('index.html')


@bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        try:
            u = auth.authenticate(request.form.get('email'), request.form.get('password'))
        except AuthError as e:
            flash(str(e), 'danger')
            return render_template('login.html', tab='login', form=request.form), 401
        login_user(u)
        return redirect(url_for('admin.panel') if u.is_admin else url_for('main.dashboard'))
    return render_template('login.html', tab='login', form={})


@bp.route('/register', methods=['GET', 'POST'])
def register():
    if request.method == 'POST':
        f = request.form
        try:
            u = auth.register_user(f.get('email'), f.get('password'), f.get('confirm_password'),
                                   f.get('full_name'), f.get('student_id'))
        except AuthError as e:
            flash(str(e), 'danger')
            return render_template('login.html', tab='register', form=f), 400
        login_user(u)
        flash('Welcome! Your account has been created.', 'success')
        return redirect(url_for('main.dashboard'))
    return render_template('login.html', tab='register', form={})


@bp.route('/logout')
@login_required
def logout():
    logout_user()
    return redirect(url_for('main.login'))


@bp.route('/dashboard')
@login_required
def dashboard():
    tab = request.args.get('tab', 'home')
    if tab not in DASHBOARD_TABS:
        tab = 'home'
    q = request.args.get('q', '').strip()

    current = laundry.get_current_order(current_user.id)
    orders = laundry.get_user_orders(current_user.id)
    ticking = current is not None and can_advance(current)
    if tab == 'home' and ticking:
        get_progress_watcher().watch(current.id)

    my_items, search_results, my_complaints = [], [], []
    try:
        my_items = lost_found.get_lost_items(current_user.id)
        if q:
            search_results = lost_found.search_lost_items(q)
        my_complaints = complaints.get_user_complaints(current_user.id)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error loading dashboard for user %s: %s', current_user.id, e)
        flash('Failed to load some of your data. Please try again.', 'warning')

    return render_template(
        'dashboard.html', tab=tab, q=q, current=current, ticking=ticking, orders=orders,
        my_items=my_items, search_results=search_results, complaints=my_complaints,
        issue_types=ISSUE_TYPES, unread=notifications.unread_count(current_user.id),
    )


@bp.route('/api/orders/current')
@login_required
def api_current_order():
    order = laundry.get_current_order(current_user.id)
    if order is not None and can_advance(order):
        get_progress_watcher().watch(order.id)
    return jsonify({'order': order.to_dict() if order else None})


@bp.route('/complaints', methods=['POST'])
@login_required
def submit_complaint():
    draft = {
        'issue_type': request.form.get('issue_type'),
        'description': request.form.get('description'),
        'order_id': _int_or_none(request.form.get('order_id')),
        'submitted_by': current_user.id,
    }
    try:
        complaints.submit_complaint(draft)
    except LaundryError as e:
        flash(str(e), 'warning')
    except SQLAlchemyError:
        flash('Failed to submit complaint. Please try again.', 'danger')
    else:
        flash('Complaint submitted. We will get back to you soon.', 'success')
    return redirect(url_for('main.dashboard', tab='support'))


@bp.route('/lost-found/report', methods=['GET', 'POST'])
@login_required
def report_lost_item():
    if request.method == 'POST':
        f = request.form
        draft = {
            'item_type': f.get('item_type'),
            'color': (f.get('color') or '').strip(),
            'brand': (f.get('brand') or '').strip() or None,
            'description': (f.get('description') or '').strip(),
            'last_seen': f.get('last_seen'),
            'order_id': _int_or_none(f.get('order_id')),
            'reported_by': current_user.id,
        }
        try:
            lost_found.report_lost_item(draft, image=request.files.get('image'))
        except LaundryError as e:
            flash(str(e), 'warning')
            return render_template('report_lost_item.html', item_types=LOST_ITEM_TYPES, form=f), 400
        except SQLAlchemyError:
            flash('Failed to submit report. Please try again.', 'danger')
            return render_template('report_lost_item.html', item_types=LOST_ITEM_TYPES, form=f), 500
        flash('Your lost item report has been submitted successfully!', 'success')
        return redirect(url_for('main.dashboard', tab='lost-found'))
    return render_template('report_lost_item.html', item_types=LOST_ITEM_TYPES, form={})


@bp.route('/lost-found/<int:item_id>/delete', methods=['POST'])
@login_required
def delete_lost_item(item_id):
    item = lost_found.get_lost_item(item_id)
    if item is None:
        abort(404)
    if item.reported_by != current_user.id:
        flash('You can only delete your own reports.', 'danger')
        return redirect(url_for('main.dashboard', tab='lost-found'))
    try:
        lost_found.delete_lost_item(item.id, item.image_url)
    except SQLAlchemyError:
        flash('Failed to delete item. Please try again.', 'danger')
    else:
        flash('Item deleted.', 'info')
    return redirect(url_for('main.dashboard', tab='lost-found'))


@bp.route('/lost-found/<int:item_id>/contact')
@login_required
def lost_item_contact(item_id):
    item = lost_found.get_lost_item(item_id)
    if item is None:
        abort(404)
    contact = lost_found.get_reporter_contact(item.reported_by)
    if contact is None:
        return jsonify({'ok': False, 'error': 'Reporter not found'}), 404
    return jsonify({'ok': True, 'contact': contact})


@bp.route('/uploads/<path:key>')
def uploaded_file(key):
    return send_from_directory(get_file_store().root, key)


@bp.route('/notifications')
@login_required
def notifications_list():
    tab = request.args.get('tab', 'all')
    if tab not in notifications.TABS:
        tab = 'all'
    items = notifications.get_notifications(current_user.id, tab)
    return render_template('notifications.html', tab=tab, notifications=items)


@bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    try:
        notifications.mark_read(current_user.id, notification_id)
    except NotFoundError:
        abort(404)
    return redirect(url_for('main.notifications_list', tab=request.args.get('tab', 'all')))


@bp.route('/notifications/read-all', methods=['POST'])
@login_required
def mark_all_notifications_read():
    notifications.mark_all_read(current_user.id)
    flash('All notifications marked as read', 'success')
    return redirect(url_for('main.notifications_list'))


@bp.route('/settings', methods=['GET', 'POST'])
@login_required
def settings():
    if request.method == 'POST':
        f = request.form
        full_name = (f.get('full_name') or '').strip()
        if not full_name:
            flash('Name cannot be empty', 'warning')
            return redirect(url_for('main.settings'))
        try:
            auth.update_profile(current_user, full_name=full_name,
                                contact_info=(f.get('contact_info') or '').strip() or current_user.email,
                                email_notifications=f.get('email_notifications') == 'on')
        except SQLAlchemyError:
            db.session.rollback()
            flash('Failed to save settings. Please try again.', 'danger')
        else:
            flash('Settings saved', 'success')
        return redirect(url_for('main.settings'))
    return render_template('settings.html')
