from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin

db = SQLAlchemy()

ORDER_STATUSES = ('pending', 'processing', 'ready', 'completed')
ACTIVE_ORDER_STATUSES = ('pending', 'processing', 'ready')
CLOTH_CATEGORIES = ('tshirt', 'trousers', 'bedsheet', 'shirt', 'pillowcover', 'kurti', 'other')

LOST_ITEM_TYPES = ('shirt', 'pants', 'dress', 'sweater', 'socks', 'underwear', 'other')
LOST_ITEM_STATUSES = ('reported', 'found', 'claimed')

ISSUE_TYPES = ('damaged', 'missing', 'late', 'quality', 'other')
COMPLAINT_STATUSES = ('submitted', 'in-progress', 'resolved')


def utcnow():
    # naive UTC, SQLite drops tzinfo on the way back anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model, UserMixin):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(200))
    full_name = db.Column(db.String(120))
    student_id = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=utcnow)
    is_admin = db.Column(db.Boolean, default=False)
    contact_info = db.Column(db.String(200))
    email_notifications = db.Column(db.Boolean, default=True)

    def set_password(self, pw):
        self.password_hash = generate_password_hash(pw)

    def check_password(self, pw):
        return check_password_hash(self.password_hash or '', pw)


class LaundryOrder(db.Model):
    __tablename__ = 'laundry_orders'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    user_email = db.Column(db.String(200))
    items = db.Column(db.Integer, default=0)
    status = db.Column(db.String(20), default='pending')  # pending, processing, ready, completed
    progress = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)
    completed_at = db.Column(db.DateTime)
    estimated_completion_time = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    cost = db.Column(db.Float)
    cloth_items = db.Column(db.JSON)
    bag_code = db.Column(db.String(4))

    @property
    def is_active(self):
        return self.status in ACTIVE_ORDER_STATUSES

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'user_email': self.user_email,
            'items': self.items,
            'status': self.status,
            'progress': self.progress,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'completed_at': _iso(self.completed_at),
            'estimated_completion_time': _iso(self.estimated_completion_time),
            'notes': self.notes,
            'cost': self.cost,
            'cloth_items': self.cloth_items,
            'bag_code': self.bag_code,
        }


class LostItem(db.Model):
    __tablename__ = 'lost_items'
    id = db.Column(db.Integer, primary_key=True)
    item_type = db.Column(db.String(20), nullable=False)
    color = db.Column(db.String(60), nullable=False)
    brand = db.Column(db.String(120))
    description = db.Column(db.Text, nullable=False)
    last_seen = db.Column(db.String(40))
    order_id = db.Column(db.Integer)
    image_url = db.Column(db.String(300))
    reported_by = db.Column(db.Integer, nullable=False, index=True)
    reported_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime)
    status = db.Column(db.String(20), default='reported')  # reported, found, claimed


class Complaint(db.Model):
    __tablename__ = 'complaints'
    id = db.Column(db.Integer, primary_key=True)
    issue_type = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text, nullable=False)
    order_id = db.Column(db.Integer)
    submitted_by = db.Column(db.Integer, nullable=False, index=True)
    submitted_at = db.Column(db.DateTime, default=utcnow)
    status = db.Column(db.String(20), default='submitted')  # submitted, in-progress, resolved
    response = db.Column(db.Text)
    updated_at = db.Column(db.DateTime)
    resolved_at = db.Column(db.DateTime)


class Notification(db.Model):
    __tablename__ = 'notifications'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    important = db.Column(db.Boolean, default=False)
    read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)


def _iso(value):
    return value.isoformat() if value else None
