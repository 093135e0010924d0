import logging

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import NotFoundError, ValidationError
from .models import db, Complaint, ISSUE_TYPES, COMPLAINT_STATUSES, utcnow

logger = logging.getLogger(__name__)


def _commit(action, ref):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error %s complaint %s: %s', action, ref, e)
        raise


def submit_complaint(draft):
    if draft.get('issue_type') not in ISSUE_TYPES:
        raise ValidationError('Please select an issue type')
    if not (draft.get('description') or '').strip():
        raise ValidationError('Please describe the issue')
    if not draft.get('submitted_by'):
        raise ValidationError('Missing required field: submitted_by')
    complaint = Complaint(
        issue_type=draft['issue_type'],
        description=draft['description'].strip(),
        order_id=draft.get('order_id'),
        submitted_by=draft['submitted_by'],
        submitted_at=utcnow(),
        status='submitted',
    )
    db.session.add(complaint)
    _commit('submitting', 'new')
    logger.info('Complaint %s submitted by user %s', complaint.id, complaint.submitted_by)
    return complaint.id


def get_user_complaints(user_id):
    return (Complaint.query.filter_by(submitted_by=user_id)
            .order_by(Complaint.submitted_at.desc(), Complaint.id.desc()).all())


def get_all_complaints():
    return Complaint.query.order_by(Complaint.submitted_at.desc(), Complaint.id.desc()).all()


def get_complaint(complaint_id):
    return db.session.get(Complaint, complaint_id)


def update_complaint_status(complaint_id, status, response=None):
    """Staff update. A non-empty ``response`` replaces the stored one; resolving stamps resolved_at."""
    if status not in COMPLAINT_STATUSES:
        raise ValidationError(f'Unknown complaint status: {status}')
    complaint = get_complaint(complaint_id)
    if complaint is None:
        raise NotFoundError(f'Complaint {complaint_id} not found')
    now = utcnow()
    complaint.status = status
    complaint.updated_at = now
    if response:
        complaint.response = response
    if status == 'resolved':
        complaint.resolved_at = now
    _commit('updating', complaint_id)
    return complaint


def delete_complaint(complaint_id):
    Complaint.query.filter_by(id=complaint_id).delete()
    _commit('deleting', complaint_id)
