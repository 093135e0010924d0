import pytest

from campus_laundry import auth
from campus_laundry.exceptions import AuthError, NotFoundError


def test_register_creates_regular_user(ctx):
    u = auth.register_user('Carol@Campus.local', 'secret1', 'secret1', 'Carol', 'S2001')
    assert u.email == 'carol@campus.local'
    assert u.is_admin is False
    assert u.contact_info == 'carol@campus.local'
    assert u.check_password('secret1')
    assert not u.check_password('secret2')


@pytest.mark.parametrize('password,confirm,message', [
    ('secret1', 'secret2', 'Passwords do not match'),
    ('abc', 'abc', 'at least 6 characters'),
])
def test_register_validation(ctx, password, confirm, message):
    with pytest.raises(AuthError, match=message):
        auth.register_user('dave@campus.local', password, confirm, 'Dave', 'S2002')


def test_register_rejects_duplicate_email(customer):
    with pytest.raises(AuthError, match='already registered'):
        auth.register_user('alice@campus.local', 'secret1', 'secret1', 'Alice', 'S1001')


def test_authenticate(customer):
    assert auth.authenticate('ALICE@campus.local', 'secret123').id == customer.id
    with pytest.raises(AuthError):
        auth.authenticate('alice@campus.local', 'wrong-password')
    with pytest.raises(AuthError):
        auth.authenticate('nobody@campus.local', 'secret123')


def test_update_profile(customer):
    auth.update_profile(customer, full_name='Alice S.', email_notifications=False)
    assert customer.full_name == 'Alice S.'
    assert customer.email_notifications is False
    with pytest.raises(AuthError):
        auth.update_profile(customer, is_admin=True)


def test_grant_admin(customer, staff):
    with pytest.raises(AuthError):
        auth.grant_admin(customer, 'admin@campus.local')
    assert auth.grant_admin(staff, 'alice@campus.local').is_admin is True
    with pytest.raises(NotFoundError):
        auth.grant_admin(staff, 'ghost@campus.local')
