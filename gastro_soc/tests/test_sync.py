import json

import pytest
from sqlalchemy import delete

from gastro_soc import config
from gastro_soc.app_container import AppContainer
from gastro_soc.errors import PersistenceError
from gastro_soc.models.entities import Product
from gastro_soc.models.state import ClubState
from gastro_soc.repositories import SnapshotStore, SqlTableStore
from gastro_soc.repositories.sql_store import build_engine, club_rows
from gastro_soc.services import StoreMirror, SyncService, reconcile


@pytest.fixture
def snapshot_path(tmp_path):
    return str(tmp_path / config.SNAPSHOT_FILE)


# =========================================================================
# SNAPSHOT LOCAL
# =========================================================================

def test_corrupt_snapshot_falls_back_to_defaults(snapshot_path):
    with open(snapshot_path, 'w', encoding='utf-8') as f:
        f.write('{ esto no es json')
    state = ClubState()
    SyncService(state, SnapshotStore(snapshot_path)).load()
    assert len(state.members) == 4
    assert state.get_product('PROD-002').current_stock == 12
    assert not state.degraded


def test_missing_keys_filled_from_defaults(snapshot_path):
    with open(snapshot_path, 'w', encoding='utf-8') as f:
        json.dump({'inventory': [], 'members': []}, f)
    store = SnapshotStore(snapshot_path)
    assert store.read_all('inventory') == []
    assert [r['id'] for r in store.read_all('locations')][0] == 'LOC-001'
    assert [r['id'] for r in store.read_all('events')] == ['EV-001']


def test_invalid_rows_start_degraded(snapshot_path):
    with open(snapshot_path, 'w', encoding='utf-8') as f:
        json.dump({'transactions': [{'id': 'TR-X', 'amount': 'mucho', 'category': 'Otros'}]}, f)
    state = ClubState()
    SyncService(state, SnapshotStore(snapshot_path)).load()
    assert state.degraded
    assert [t.id for t in state.transactions] == ['TR-001', 'TR-002', 'TR-003']


def test_reload_propagates_store_errors(snapshot_path):
    state = ClubState()
    sync = SyncService(state, SnapshotStore(snapshot_path))
    sync.load()
    with open(snapshot_path, 'w', encoding='utf-8') as f:
        json.dump({'inventory': [{'id': 'PROD-001', 'currentStock': 'x'}]}, f)
    with pytest.raises(PersistenceError):
        sync.reload()
    assert state.get_product('PROD-001').current_stock == 48


def test_external_edit_detected_by_poll(snapshot_path):
    state = ClubState()
    store = SnapshotStore(snapshot_path)
    sync = SyncService(state, store)
    sync.load()

    data = store.load_snapshot()
    data['inventory'][0]['currentStock'] = 7
    with open(snapshot_path, 'w', encoding='utf-8') as f:
        json.dump(data, f)
    # fuerza una fecha de modificación distinta
    store._last_mtime = -1

    assert sync.poll() is True
    assert state.get_product('PROD-001').current_stock == 7


def test_second_instance_is_notified(snapshot_path):
    first_state, second_state = ClubState(), ClubState()
    first_store, second_store = SnapshotStore(snapshot_path), SnapshotStore(snapshot_path)
    first_sync = SyncService(first_state, first_store)
    second_sync = SyncService(second_state, second_store)
    first_sync.load()
    second_sync.load()
    second_sync.start_listening()
    try:
        product = first_state.get_product('PROD-003')
        product.current_stock = 1
        first_store.upsert('inventory', product.to_dict())
        assert second_state.get_product('PROD-003').current_stock == 1
    finally:
        second_sync.stop_listening()
    assert not second_sync.listening


# =========================================================================
# RECONCILIACIÓN
# =========================================================================

def test_reconcile_by_id():
    items = [
        Product('P-1', 'Uno', current_stock=1),
        Product('P-2', 'Dous', current_stock=2),
        Product('P-3', 'Tres', current_stock=3),
    ]
    kept = items[0]
    incoming = [
        Product('P-1', 'Uno', current_stock=1).to_dict(),
        Product('P-3', 'Tres', current_stock=30).to_dict(),
        Product('P-4', 'Catro', current_stock=4).to_dict(),
    ]
    counts = reconcile(items, incoming, Product)
    assert counts == {'added': 1, 'updated': 1, 'removed': 1}
    assert [p.id for p in items] == ['P-1', 'P-3', 'P-4']
    assert items[0] is kept
    assert items[1].current_stock == 30


# =========================================================================
# ALMACÉN SQL
# =========================================================================

def test_sql_store_seeds_and_round_trips():
    store = SqlTableStore('sqlite://')
    try:
        assert [r['id'] for r in store.read_all('members')] == ['SOC-001', 'SOC-002', 'SOC-003', 'SOC-004']
        row = store.read_all('inventory')[0]
        row['currentStock'] = 99
        store.upsert('inventory', row)
        assert store.read_all('inventory')[0]['currentStock'] == 99

        store.delete('events', 'EV-001')
        assert store.read_all('events') == []
        with pytest.raises(KeyError):
            store.read_all('facturas')
    finally:
        store.dispose()


def test_sql_store_notifies_other_instances():
    engine = build_engine('sqlite://')
    writer = SqlTableStore('sqlite://', engine=engine)
    reader = SqlTableStore('sqlite://', engine=engine)
    state = ClubState()
    sync = SyncService(state, reader)
    sync.load()
    sync.start_listening()
    try:
        row = writer.read_all('members')[3]
        row['status'] = 'Inactiva'
        writer.upsert('members', row)
        assert not state.get_member('SOC-004').is_active
    finally:
        sync.stop_listening()
        engine.dispose()


def test_sql_store_detects_rows_deleted_elsewhere():
    store = SqlTableStore('sqlite://')
    state = ClubState()
    sync = SyncService(state, store)
    sync.load()
    try:
        assert store.check_for_changes() is False
        condition = (club_rows.c.table_name == 'inventory') & (club_rows.c.row_id == 'PROD-001')
        with store.engine.begin() as conn:
            conn.execute(delete(club_rows).where(condition))

        assert sync.poll() is True
        assert state.get_product('PROD-001') is None
        assert len(state.inventory) == 3
        assert store.check_for_changes() is False
    finally:
        store.dispose()


def test_sql_store_own_delete_is_not_external_change():
    store = SqlTableStore('sqlite://')
    try:
        store.delete('events', 'EV-001')
        store.upsert('events', {'id': 'EV-900', 'title': 'Nova'})
        assert store.check_for_changes() is False
    finally:
        store.dispose()


def test_container_falls_back_when_database_unreachable(tmp_path):
    AppContainer.reset_instance()
    container = AppContainer(
        data_dir=str(tmp_path), database_url='notadriver://nowhere',
        sync_mode='immediate', poll_interval=0,
    )
    try:
        container.start(listen=False)
        assert isinstance(container.store, SnapshotStore)
        assert container.state.degraded
        assert len(container.state.inventory) == 4
    finally:
        AppContainer.reset_instance()


# =========================================================================
# RÉPLICA DIFERIDA
# =========================================================================

class FlakyStore:
    """Almacén en memoria que falla las primeras `failures` escrituras."""

    def __init__(self, failures=0):
        self.rows = {}
        self.failures = failures

    def upsert(self, table, row):
        if self.failures:
            self.failures -= 1
            raise PersistenceError("sin conexión")
        self.rows[(table, row['id'])] = row

    def delete(self, table, row_id):
        self.rows.pop((table, row_id), None)


def test_deferred_mirror_flushes_queue():
    store = FlakyStore()
    mirror = StoreMirror(store, config.SYNC_MODE_DEFERRED)
    for stock in (1, 2, 3):
        mirror.save('inventory', Product('P-1', 'Uno', current_stock=stock))
    mirror.remove('inventory', 'P-0')
    assert mirror.flush() == 0
    assert mirror.pending == 0
    assert store.rows[('inventory', 'P-1')]['currentStock'] == 3
    mirror.close()


def test_deferred_mirror_retries_failed_writes():
    store = FlakyStore(failures=1)
    mirror = StoreMirror(store, config.SYNC_MODE_DEFERRED)
    mirror.save('inventory', Product('P-1', 'Uno', current_stock=5))
    mirror.wait()
    assert len(mirror.failed) == 1
    assert mirror.flush() == 0
    assert store.rows[('inventory', 'P-1')]['currentStock'] == 5
    mirror.close()


def test_immediate_mirror_raises():
    mirror = StoreMirror(FlakyStore(failures=1), config.SYNC_MODE_IMMEDIATE)
    with pytest.raises(PersistenceError):
        mirror.save('inventory', Product('P-1', 'Uno'))


def test_unknown_sync_mode_rejected():
    with pytest.raises(ValueError):
        StoreMirror(FlakyStore(), 'eventual')
