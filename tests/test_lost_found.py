import io
from datetime import datetime, timedelta

import pytest
from werkzeug.datastructures import FileStorage

from campus_laundry import lost_found
from campus_laundry.exceptions import NotFoundError, ValidationError
from campus_laundry.models import db, LostItem
from campus_laundry.storage import get_file_store

from conftest import add_user, png_bytes


def _draft(user, **overrides):
    draft = {
        'item_type': 'shirt', 'color': 'White', 'brand': None,
        'description': 'plain white tee', 'last_seen': '2024-03-01', 'reported_by': user.id,
    }
    draft.update(overrides)
    return draft


def _upload(data, filename='shirt.png'):
    return FileStorage(stream=io.BytesIO(data), filename=filename)


class FailingStore:
    """File store whose deletes always fail."""

    def key_from_url(self, url):
        return url.rsplit('/', 1)[-1]

    def delete(self, key):
        raise OSError('storage unavailable')


def test_report_sets_status_and_timestamp(customer):
    item_id = lost_found.report_lost_item(_draft(customer))
    item = lost_found.get_lost_item(item_id)
    assert item.status == 'reported'
    assert item.reported_at is not None
    assert item.image_url is None
    assert item.reported_by == customer.id


def test_report_with_image_stores_it_and_keeps_url(customer):
    item_id = lost_found.report_lost_item(_draft(customer), image=_upload(png_bytes(), 'my shirt.png'))
    item = lost_found.get_lost_item(item_id)
    assert item.image_url.startswith('/uploads/lost-items/')
    assert item.image_url.endswith('-my_shirt.png')
    store = get_file_store()
    assert store.exists(store.key_from_url(item.image_url))


def test_report_rejects_non_images(customer):
    with pytest.raises(ValidationError):
        lost_found.report_lost_item(_draft(customer), image=_upload(b'not an image', 'shirt.png'))
    with pytest.raises(ValidationError):
        lost_found.report_lost_item(_draft(customer), image=_upload(png_bytes(), 'shirt.exe'))
    assert lost_found.get_lost_items() == []


def test_report_rejects_oversized_images(ctx, customer):
    ctx.config['MAX_IMAGE_BYTES'] = 10
    with pytest.raises(ValidationError, match='5MB'):
        lost_found.report_lost_item(_draft(customer), image=_upload(png_bytes()))


def test_report_requires_type_and_description(customer):
    with pytest.raises(ValidationError):
        lost_found.report_lost_item(_draft(customer, item_type='hat'))
    with pytest.raises(ValidationError):
        lost_found.report_lost_item(_draft(customer, description=''))


def test_list_newest_first_and_owner_filter(customer):
    other = add_user('bob@campus.local')
    first = lost_found.report_lost_item(_draft(customer))
    second = lost_found.report_lost_item(_draft(other))
    third = lost_found.report_lost_item(_draft(customer))
    base = datetime(2024, 3, 1)
    for offset, item_id in enumerate((first, second, third)):
        lost_found.get_lost_item(item_id).reported_at = base + timedelta(minutes=offset)
    db.session.commit()

    assert [i.id for i in lost_found.get_lost_items()] == [third, second, first]
    assert [i.id for i in lost_found.get_lost_items(customer.id)] == [third, first]


def test_search_is_case_insensitive_over_four_fields(customer):
    db.session.add_all([
        LostItem(item_type='shirt', color='Blue', description='collar shirt', reported_by=customer.id),
        LostItem(item_type='Blue Hoodie', color='grey', description='zip up', reported_by=customer.id),
        LostItem(item_type='socks', color='red', brand='Nike', description='ankle socks',
                 reported_by=customer.id),
    ])
    db.session.commit()

    results = lost_found.search_lost_items('blue')
    assert sorted((i.item_type, i.color) for i in results) == [('Blue Hoodie', 'grey'), ('shirt', 'Blue')]
    assert [i.brand for i in lost_found.search_lost_items('NIKE')] == ['Nike']
    assert [i.item_type for i in lost_found.search_lost_items('ANKLE')] == ['socks']
    assert lost_found.search_lost_items('purple') == []


def test_update_status(customer):
    item_id = lost_found.report_lost_item(_draft(customer))
    item = lost_found.update_lost_item_status(item_id, 'found')
    assert item.status == 'found'
    assert item.updated_at is not None
    with pytest.raises(ValidationError):
        lost_found.update_lost_item_status(item_id, 'lost')
    with pytest.raises(NotFoundError):
        lost_found.update_lost_item_status(item_id + 1, 'claimed')


def test_delete_removes_record_and_image(customer):
    item_id = lost_found.report_lost_item(_draft(customer), image=_upload(png_bytes()))
    url = lost_found.get_lost_item(item_id).image_url
    store = get_file_store()
    key = store.key_from_url(url)

    lost_found.delete_lost_item(item_id, url)

    assert lost_found.get_lost_item(item_id) is None
    assert not store.exists(key)


def test_delete_survives_image_store_failure(customer):
    item_id = lost_found.report_lost_item(_draft(customer))
    lost_found.delete_lost_item(item_id, '/uploads/lost-items/1-gone.png', store=FailingStore())
    assert lost_found.get_lost_item(item_id) is None


def test_delete_survives_missing_image_file(customer):
    item_id = lost_found.report_lost_item(_draft(customer))
    lost_found.delete_lost_item(item_id, '/uploads/lost-items/never-stored.png')
    assert lost_found.get_lost_item(item_id) is None


def test_reporter_contact(customer):
    customer.contact_info = 'Room 204, Hall B'
    db.session.commit()
    contact = lost_found.get_reporter_contact(customer.id)
    assert contact['name'] == 'Alice Student'
    assert contact['contact_info'] == 'Room 204, Hall B'
    assert lost_found.get_reporter_contact(999) is None
    assert lost_found.get_user(999) is None
