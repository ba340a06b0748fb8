from .conftest import FUTURE_DATE, login


def test_session_without_login(client):
    data = client.get('/api/session').get_json()
    assert data['ok'] is True
    assert data['authenticated'] is False
    assert len(data['csrf_token']) == 32


def test_login_requires_csrf(client):
    r = client.post('/api/login', json={'pin': '0628'})
    assert r.status_code == 403
    assert r.get_json() == {'ok': False, 'error': 'CSRF token inválido'}


def test_wrong_pin(client):
    token = client.get('/api/session').get_json()['csrf_token']
    r = client.post('/api/login', json={'pin': '0000'}, headers={'X-CSRF-Token': token})
    assert r.status_code == 401
    assert r.get_json()['code'] == 'authentication'


def test_login_and_session(client):
    token = login(client, '0628')
    data = client.get('/api/session').get_json()
    assert data['authenticated'] is True
    assert data['member']['id'] == 'SOC-001'
    assert data['permissions']['manage_finance'] is True
    assert data['csrf_token'] == token


def test_routes_require_login(client):
    r = client.get('/api/inventory')
    assert r.status_code == 401
    assert r.get_json()['ok'] is False


def test_mutation_without_csrf_rejected(client, container):
    login(client, '0628')
    r = client.post('/api/inventory/PROD-001/restock', json={'quantity': 5})
    assert r.status_code == 403
    assert container.state.get_product('PROD-001').current_stock == 48


def test_restock_with_csrf_header(client, container):
    token = login(client, '0628')
    r = client.post('/api/inventory/PROD-001/restock', json={'quantity': 5},
                    headers={'X-CSRFToken': token})
    assert r.status_code == 200
    assert r.get_json()['product']['currentStock'] == 53


def test_dashboard_hides_balance_for_socia(client):
    login(client, '3333')
    data = client.get('/api/dashboard').get_json()['dashboard']
    assert 'balance' not in data
    assert data['critical_stock'] == 0
    assert data['active_members'] == 4


def test_dashboard_shows_balance_to_board(client):
    login(client, '2222')
    data = client.get('/api/dashboard').get_json()['dashboard']
    assert data['balance'] == {'projected': 1164.8, 'confirmed': 1250.0}


def test_event_flow(client, container):
    token = login(client, '0628')
    headers = {'X-CSRF-Token': token}

    r = client.post('/api/events', json={'title': 'Magosto', 'date': FUTURE_DATE, 'zoneId': 'LOC-003'},
                    headers=headers)
    assert r.status_code == 201
    event_id = r.get_json()['event']['id']

    r = client.post(f'/api/events/{event_id}/consumptions',
                    json={'type': 'product', 'productId': 'PROD-001', 'quantity': 10}, headers=headers)
    assert r.status_code == 201
    assert r.get_json()['event']['totalCost'] == 15.0

    r = client.post(f'/api/events/{event_id}/consumptions',
                    json={'type': 'product', 'productId': 'PROD-003', 'quantity': 50}, headers=headers)
    assert r.status_code == 409
    assert r.get_json()['code'] == 'insufficient_stock'

    r = client.post(f'/api/events/{event_id}/settle', json={'paymentMethod': 'Bizum'}, headers=headers)
    assert r.status_code == 200
    assert r.get_json()['transaction']['amount'] == 15.0

    r = client.post(f'/api/events/{event_id}/settle', json={}, headers=headers)
    assert r.status_code == 409
    assert r.get_json()['code'] == 'event_locked'


def test_zone_conflict_over_api(client):
    token = login(client, '0628')
    r = client.post('/api/events', json={'title': 'Choque', 'date': '2025-02-15', 'zoneId': 'LOC-001'},
                    headers={'X-CSRF-Token': token})
    assert r.status_code == 409
    assert r.get_json()['details']['event_id'] == 'EV-001'


def test_socia_cannot_settle_over_api(client, container):
    token = login(client, '3333')
    r = client.post('/api/events/EV-001/settle', json={}, headers={'X-CSRF-Token': token})
    assert r.status_code == 403
    assert r.get_json()['code'] == 'permission_denied'
    assert not container.state.get_event('EV-001').is_paid


def test_treasury_hidden_from_socia(client):
    login(client, '3333')
    assert client.get('/api/transactions').status_code == 403


def test_members_list_hides_sensitive_fields(client):
    login(client, '3333')
    members = {m['id']: m for m in client.get('/api/members').get_json()['members']}
    assert 'iban' not in members['SOC-001']
    assert members['SOC-003']['pin'] == '3333'


def test_messages(client):
    token = login(client, '3333')
    r = client.post('/api/messages', json={'content': 'Quen trae as castañas?'},
                    headers={'X-CSRF-Token': token})
    assert r.status_code == 201
    data = client.get('/api/messages').get_json()
    assert data['messages'][-1]['content'] == 'Quen trae as castañas?'


def test_logout(client):
    token = login(client, '0628')
    assert client.post('/api/logout', headers={'X-CSRF-Token': token}).status_code == 200
    assert client.get('/api/session').get_json()['authenticated'] is False


def test_security_headers_and_json_404(client):
    r = client.get('/api/no-existe')
    assert r.status_code == 404
    assert r.get_json()['ok'] is False
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_audit_log_filters(client):
    token = login(client, '2222')
    r = client.post('/api/events/EV-001/settle', json={'paymentMethod': 'Bizum'},
                    headers={'X-CSRF-Token': token})
    assert r.status_code == 200

    data = client.get('/api/audit?type=PAGO').get_json()
    assert data['ok'] is True
    assert data['total'] == 2
    assert {log['type'] for log in data['logs']} == {'PAGO'}
    assert {log['user'] for log in data['logs']} == {'SOC-002'}
    assert 'EV-001' in [log['related_id'] for log in data['logs']]

    assert client.get('/api/audit?q=EV-001&user=SOC-001').get_json()['logs'] == []
    assert len(client.get('/api/audit?limit=1').get_json()['logs']) == 1
    assert client.get('/api/audit?limit=0').status_code == 400


def test_audit_log_hidden_from_socia(client):
    login(client, '3333')
    r = client.get('/api/audit')
    assert r.status_code == 403
    assert r.get_json()['code'] == 'permission_denied'


def test_inventory_exposes_stock_level(client, container):
    container.state.get_product('PROD-003').current_stock = 1
    login(client, '3333')
    products = {p['id']: p for p in client.get('/api/inventory').get_json()['products']}
    assert products['PROD-001']['stockLevel'] == 'ok'
    assert products['PROD-003']['stockLevel'] == 'emergencia'
