import pytest
from pymongo.errors import PyMongoError

from planhaus.db import ActivityLog, create_activity_description
from planhaus.forms import Notifier


@pytest.mark.parametrize("action,details,expected", [
    ('Created', None, 'added Hall to Venue'),
    ('Created', '$5000', 'added Hall to Venue ($5000)'),
    ('Updated', 'price', 'updated Hall in Venue - price'),
    ('Deleted', 'ignored', 'removed Hall from Venue'),
    ('Completed', 'Early!', 'completed Hall. Early!'),
    ('Archived', None, 'archived Hall'),
])
def test_create_activity_description(action, details, expected):
    assert create_activity_description(action, 'Venue', 'Hall', details) == expected


def test_log_stores_entry(db):
    log = ActivityLog(db)
    assert log.log('p1', 'u1', 'Ann', 'Budget', 'Created', 'budget_item', 'added Hall to Venue', entity_id='b1')

    [entry] = log.recent('p1')
    assert entry['userName'] == 'Ann'
    assert entry['entityId'] == 'b1'
    assert entry['id']


def test_log_never_raises(db):
    class BrokenCollection:
        def insert_one(self, doc):
            raise PyMongoError('write failed')

    log = ActivityLog(db)
    log.collection = BrokenCollection()

    assert log.log('p1', 'u1', 'Ann', 'Budget', 'Created', 'budget_item', 'added Hall') is False


def test_notifier_expires_transient_toasts():
    now = [0.0]
    notifier = Notifier(clock=lambda: now[0])
    notifier.success('Saved', 'ok', duration=2.0)
    error = notifier.error('Save Failed', 'nope')

    now[0] = 2.5
    assert notifier.active() == [error]
    notifier.dismiss(error)
    assert notifier.active() == []
