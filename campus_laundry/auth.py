"""
Account management on top of Werkzeug password hashes.

Session handling itself is Flask-Login's: the views call ``login_user`` after
``authenticate`` succeeds and ``logout_user`` on sign-out.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import AuthError, NotFoundError
from .models import db, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

_PROFILE_FIELDS = {'full_name', 'contact_info', 'email_notifications'}


def _normalize_email(email):
    return (email or '').strip().lower()


def register_user(email, password, confirm_password, full_name, student_id):
    email = _normalize_email(email)
    if not email or not password or not (full_name or '').strip() or not (student_id or '').strip():
        raise AuthError('All fields are required')
    if password != confirm_password:
        raise AuthError('Passwords do not match')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    if User.query.filter_by(email=email).first():
        raise AuthError('Email already registered')

    u = User(email=email, full_name=full_name.strip(), student_id=student_id.strip(),
             is_admin=False, contact_info=email)
    u.set_password(password)
    try:
        db.session.add(u)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error registering %s: %s', email, e)
        raise
    logger.info('Registered user %s (%s)', u.id, email)
    return u


def authenticate(email, password):
    u = User.query.filter_by(email=_normalize_email(email)).first()
    if not u or not u.check_password(password or ''):
        raise AuthError('Invalid email or password')
    return u


def update_profile(user, **fields):
    unknown = set(fields) - _PROFILE_FIELDS
    if unknown:
        raise AuthError(f'Cannot update profile fields: {", ".join(sorted(unknown))}')
    for key, value in fields.items():
        setattr(user, key, value)
    db.session.commit()
    return user


def grant_admin(acting_user, email):
    if not acting_user.is_admin:
        raise AuthError('Only admins can grant admin access')
    target = User.query.filter_by(email=_normalize_email(email)).first()
    if target is None:
        raise NotFoundError(f'No user with email {email}')
    target.is_admin = True
    db.session.commit()
    logger.info('User %s granted admin access to %s', acting_user.id, target.email)
    return target
