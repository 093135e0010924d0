"""
In-app notifications, mirrored to email for users who opted in.
"""
import logging
import smtplib
import ssl
from email.message import EmailMessage

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import NotFoundError
from .models import db, Notification, User

logger = logging.getLogger(__name__)

TABS = ('all', 'unread', 'important')


def send_email(subject, body, to_email):
    cfg = current_app.config
    smtp_server = cfg.get('SMTP_SERVER')
    smtp_port = int(cfg.get('SMTP_PORT') or 0)
    smtp_user = cfg.get('SMTP_USER')
    smtp_pass = cfg.get('SMTP_PASS')
    smtp_from = cfg.get('SMTP_FROM') or (smtp_user or 'noreply@example.com')

    msg = EmailMessage()
    msg['Subject'] = subject
    msg['From'] = smtp_from
    msg['To'] = to_email
    msg.set_content(body)

    if not (smtp_server and smtp_port and smtp_user and smtp_pass):
        logger.info('Email not configured, would send to %s: %s', to_email, subject)
        return False, 'not-configured'
    try:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(smtp_server, smtp_port, context=context) as server:
            server.login(smtp_user, smtp_pass)
            server.send_message(msg)
        logger.info('Email sent to %s (via %s:%s)', to_email, smtp_server, smtp_port)
        return True, 'sent'
    except (smtplib.SMTPException, OSError) as e:
        logger.error('SMTP send failed: %s', e)
        return False, str(e)


def notify(user_id, title, content, important=False):
    notif = Notification(user_id=user_id, title=title, content=content, important=important)
    try:
        db.session.add(notif)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error creating notification for user %s: %s', user_id, e)
        raise
    logger.info('Created notification %s for user %s', notif.id, user_id)

    user = db.session.get(User, user_id)
    if user is not None and user.email_notifications and user.email:
        body = f"Hello {user.full_name or ''},\n\n{content}\n\nRegards,\nCampus Laundry"
        send_email(title, body, user.email)
    return notif


def get_notifications(user_id, tab='all'):
    q = Notification.query.filter_by(user_id=user_id)
    if tab == 'unread':
        q = q.filter_by(read=False)
    elif tab == 'important':
        q = q.filter_by(important=True)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def unread_count(user_id):
    return Notification.query.filter_by(user_id=user_id, read=False).count()


def mark_read(user_id, notification_id):
    notif = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if notif is None:
        raise NotFoundError('Notification not found')
    notif.read = True
    db.session.commit()
    return notif


def mark_all_read(user_id):
    Notification.query.filter_by(user_id=user_id, read=False).update({'read': True})
    db.session.commit()


# events raised by the screens

def order_created(order):
    notify(order.user_id, 'Order Received',
           f"We've received your laundry order #{order.id} ({order.items} items).")


def order_status_changed(order, previous_status):
    if order.status == previous_status:
        return
    if order.status == 'ready':
        notify(order.user_id, 'Laundry Ready!',
               f'Your order #{order.id} is ready for pickup.', important=True)
    elif order.status == 'processing':
        notify(order.user_id, 'Processing Started',
               f"We've started processing your laundry order #{order.id}.")
    elif order.status == 'completed':
        notify(order.user_id, 'Order Completed', f'Your order #{order.id} has been completed.')
    else:
        notify(order.user_id, 'Order Updated',
               f'Your order #{order.id} status has been updated to {order.status}.')


def complaint_answered(complaint):
    notify(complaint.submitted_by, 'Complaint Update',
           f'Your complaint about "{complaint.issue_type}" is now {complaint.status}.'
           + (f'\n\nResponse: {complaint.response}' if complaint.response else ''),
           important=complaint.status == 'resolved')


def lost_item_status_changed(item):
    notify(item.reported_by, 'Lost Item Update',
           f'Your lost {item.color} {item.item_type} has been marked as {item.status}.',
           important=item.status == 'found')
