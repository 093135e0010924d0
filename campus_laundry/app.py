import logging
import os

from flask import Flask
from flask_login import LoginManager

from .models import db, User, LostItem, Complaint
from .progress import ProgressWatcher
from .storage import LocalFileStore
from . import laundry

login_manager = LoginManager()
login_manager.login_view = 'main.login'
login_manager.login_message_category = 'warning'


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


def _default_config():
    return {
        'SECRET_KEY': os.environ.get('FLASK_SECRET', 'dev-secret-key'),
        'SQLALCHEMY_DATABASE_URI': os.environ.get('DATABASE_URL', 'sqlite:///data.db'),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': os.environ.get('UPLOAD_FOLDER', 'static/uploads'),
        'MAX_IMAGE_BYTES': int(os.environ.get('MAX_IMAGE_BYTES') or 5 * 1024 * 1024),
        'PROGRESS_TICK_SECONDS': float(os.environ.get('PROGRESS_TICK_SECONDS') or 3),
        'PROGRESS_STALE_SECONDS': float(os.environ.get('PROGRESS_STALE_SECONDS') or 15),
        'SMTP_SERVER': os.environ.get('SMTP_SERVER'),
        'SMTP_PORT': os.environ.get('SMTP_PORT'),
        'SMTP_USER': os.environ.get('SMTP_USER'),
        'SMTP_PASS': os.environ.get('SMTP_PASS'),
        'SMTP_FROM': os.environ.get('SMTP_FROM'),
        'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO'),
    }


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.update(_default_config())
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=app.config['LOG_LEVEL'],
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    db.init_app(app)
    login_manager.init_app(app)
    app.extensions['file_store'] = LocalFileStore(app.config['UPLOAD_FOLDER'])
    ProgressWatcher(app)

    from .views import bp as main_bp
    from .admin import bp as admin_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)

    with app.app_context():
        db.create_all()

    _register_commands(app)
    return app


def _register_commands(app):

    @app.cli.command('initdb')
    def initdb_command():
        db.drop_all(); db.create_all()
        print('Initialized DB.')

    @app.cli.command('seeddb')
    def seeddb_command():
        db.drop_all(); db.create_all()
        admin = User(full_name='Admin Demo', email='admin@campus.local', student_id='STAFF-1',
                     contact_info='Laundry counter, Block A')
        admin.set_password('admin123'); admin.is_admin = True
        alice = User(full_name='Alice Student', email='alice@campus.local', student_id='S1001',
                     contact_info='alice@campus.local')
        alice.set_password('alice123')
        bob = User(full_name='Bob Student', email='bob@campus.local', student_id='S1002',
                   contact_info='bob@campus.local')
        bob.set_password('bob123')
        db.session.add_all([admin, alice, bob]); db.session.commit()

        clothes = laundry.empty_cloth_items()
        clothes.update(tshirt=3, trousers=2)
        laundry.create_order({
            'user_id': alice.id, 'user_email': alice.email, 'items': laundry.total_items(clothes),
            'status': 'processing', 'progress': laundry.initial_progress('processing'),
            'estimated_completion_time': laundry.estimated_completion(),
            'cloth_items': clothes, 'bag_code': laundry.generate_bag_code(), 'cost': 4.5,
        })
        db.session.add_all([
            LostItem(item_type='sweater', color='Blue', brand='Uniqlo',
                     description='Navy hoodie with college crest', last_seen='2024-03-02',
                     reported_by=bob.id),
            Complaint(issue_type='late', description='Order came back a day late',
                      submitted_by=bob.id),
        ])
        db.session.commit()

        print('Seeded DB: admin@campus.local/admin123, alice@campus.local/alice123, bob@campus.local/bob123')


if __name__ == '__main__':
    create_app().run(debug=True)
