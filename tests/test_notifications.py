import pytest

from campus_laundry import notifications, laundry
from campus_laundry.exceptions import NotFoundError
from campus_laundry.models import db


def test_tabs_filter_notifications(customer):
    notifications.notify(customer.id, 'Order Received', 'We have your bag.')
    notifications.notify(customer.id, 'Laundry Ready!', 'Pick it up.', important=True)
    read = notifications.notify(customer.id, 'Old news', 'Last week.')
    notifications.mark_read(customer.id, read.id)

    assert len(notifications.get_notifications(customer.id)) == 3
    assert {n.title for n in notifications.get_notifications(customer.id, 'unread')} == {
        'Order Received', 'Laundry Ready!'}
    assert [n.title for n in notifications.get_notifications(customer.id, 'important')] == ['Laundry Ready!']
    assert notifications.unread_count(customer.id) == 2


def test_mark_all_read(customer):
    notifications.notify(customer.id, 'a', 'a')
    notifications.notify(customer.id, 'b', 'b')
    notifications.mark_all_read(customer.id)
    assert notifications.unread_count(customer.id) == 0


def test_mark_read_only_own_notifications(customer, staff):
    n = notifications.notify(staff.id, 'Staff only', 'x')
    with pytest.raises(NotFoundError):
        notifications.mark_read(customer.id, n.id)


def test_email_is_logged_when_smtp_is_not_configured(ctx):
    assert notifications.send_email('Hi', 'body', 'someone@campus.local') == (False, 'not-configured')


def test_email_sent_only_to_opted_in_users(customer, monkeypatch):
    sent = []
    monkeypatch.setattr(notifications, 'send_email', lambda s, b, to: sent.append((s, to)) or (True, 'sent'))

    notifications.notify(customer.id, 'Laundry Ready!', 'Pick it up.')
    customer.email_notifications = False
    db.session.commit()
    notifications.notify(customer.id, 'Order Completed', 'Done.')

    assert sent == [('Laundry Ready!', 'alice@campus.local')]


def test_order_status_events(customer):
    oid = laundry.create_order({'user_id': customer.id, 'items': 1, 'status': 'pending'})
    order = laundry.update_order(oid, status='ready')
    notifications.order_status_changed(order, 'pending')
    notifications.order_status_changed(order, 'ready')

    titles = [n.title for n in notifications.get_notifications(customer.id)]
    assert titles == ['Laundry Ready!']
