"""
Lost-item directory: customer reports of missing garments, optionally with a photo.
"""
import io
import logging
import time

from flask import current_app
from PIL import Image, UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from .exceptions import NotFoundError, ValidationError
from .models import db, LostItem, User, LOST_ITEM_TYPES, LOST_ITEM_STATUSES, utcnow
from .storage import get_file_store

logger = logging.getLogger(__name__)

ALLOWED_EXT = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024

_DRAFT_FIELDS = ('item_type', 'color', 'brand', 'description', 'last_seen', 'order_id', 'reported_by')


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXT


def _read_image(image):
    if not allowed_file(image.filename or ''):
        raise ValidationError('Image must be a PNG, JPEG, GIF or WebP file')
    data = image.read()
    limit = current_app.config.get('MAX_IMAGE_BYTES', DEFAULT_MAX_IMAGE_BYTES)
    if len(data) > limit:
        raise ValidationError('Image must be less than 5MB')
    try:
        Image.open(io.BytesIO(data)).verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError('Uploaded file is not a valid image')
    return data


def _image_key(filename):
    return f'lost-items/{int(time.time() * 1000)}-{secure_filename(filename)}'


def report_lost_item(draft, image=None, store=None):
    """Create a lost-item report and return its id.

    ``image`` is an uploaded file (anything with ``filename`` and ``read()``);
    it is stored first and the record keeps its URL.
    """
    if draft.get('item_type') not in LOST_ITEM_TYPES:
        raise ValidationError('Please select an item type')
    for field in ('color', 'description', 'reported_by'):
        if not draft.get(field):
            raise ValidationError(f'Missing required field: {field}')

    image_url = None
    if image is not None and image.filename:
        data = _read_image(image)
        store = store or get_file_store()
        key = store.upload(_image_key(image.filename), io.BytesIO(data))
        image_url = store.url_for(key)

    item = LostItem(
        image_url=image_url,
        reported_at=utcnow(),
        status='reported',
        **{k: draft.get(k) for k in _DRAFT_FIELDS},
    )
    try:
        db.session.add(item)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error reporting lost item: %s', e)
        raise
    logger.info('Lost item %s reported by user %s', item.id, item.reported_by)
    return item.id


def get_lost_items(user_id=None):
    q = LostItem.query
    if user_id is not None:
        q = q.filter_by(reported_by=user_id)
    return q.order_by(LostItem.reported_at.desc(), LostItem.id.desc()).all()


def _matches(item, term):
    return any(term in (value or '').lower()
               for value in (item.item_type, item.color, item.brand, item.description))


def search_lost_items(term):
    """Case-insensitive substring search over type, color, brand and description."""
    term = (term or '').lower()
    return [it for it in get_lost_items() if _matches(it, term)]


def get_lost_item(item_id):
    return db.session.get(LostItem, item_id)


def get_user(user_id):
    return db.session.get(User, user_id)


def get_reporter_contact(user_id):
    user = get_user(user_id)
    if user is None:
        return None
    return {
        'name': user.full_name,
        'email': user.email,
        'contact_info': user.contact_info or user.email,
    }


def update_lost_item_status(item_id, status):
    if status not in LOST_ITEM_STATUSES:
        raise ValidationError(f'Unknown lost item status: {status}')
    item = get_lost_item(item_id)
    if item is None:
        raise NotFoundError(f'Lost item {item_id} not found')
    item.status = status
    item.updated_at = utcnow()
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error updating lost item status %s: %s', item_id, e)
        raise
    return item


def delete_lost_item(item_id, image_url=None, store=None):
    """Delete a report. A failure to remove its image is logged and ignored."""
    if image_url:
        try:
            store = store or get_file_store()
            key = store.key_from_url(image_url)
            if key:
                store.delete(key)
        except Exception as e:
            logger.error('Error deleting image %s: %s', image_url, e)
    try:
        LostItem.query.filter_by(id=item_id).delete()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Error deleting lost item %s: %s', item_id, e)
        raise
