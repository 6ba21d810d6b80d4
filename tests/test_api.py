import io

import openpyxl

from conftest import sample_fields, sample_material


def create(client, **overrides):
    resp = client.post('/api/work-orders', json=sample_fields(**overrides))
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()['wo_number']


def login(client, username='admin', password='admin'):
    return client.post('/api/edit-login', json={'username': username, 'password': password})


class TestBasics:
    def test_hello(self, client):
        assert client.get('/api/hello').get_json() == {'message': 'Hello from PlantOps backend!'}

    def test_health(self, client):
        assert client.get('/api/health').get_json()['status'] == 'ok'

    def test_frontend_placeholder(self, client):
        resp = client.get('/')
        assert resp.status_code == 200
        assert b'PlantOps' in resp.data

    def test_unknown_api_path(self, client):
        assert client.get('/api/nothing-here').status_code == 404

    def test_default_units_after_failed_fetch(self, client):
        assert [u['code'] for u in client.get('/api/units').get_json()] == ['BSS-75', 'EX7-43', 'LT-01']


class TestWorkOrders:
    def test_create_and_list(self, client):
        assert client.get('/api/work-orders/next-number').get_json() == {'wo_number': 'WO-00001'}
        wo_number = create(client, unit_type=None)
        assert wo_number == 'WO-00001'

        listing = client.get('/api/work-orders').get_json()
        assert listing['total'] == 1
        assert listing['items'][0]['unit_type'] == 'DUMP TRUCK'
        assert client.get('/api/work-orders?status=RFU').get_json()['total'] == 0

    def test_create_missing_field(self, client):
        resp = client.post('/api/work-orders', json=sample_fields(description=''))
        assert resp.status_code == 400
        assert resp.get_json()['success'] is False
        assert client.get('/api/work-orders/next-number').get_json()['wo_number'] == 'WO-00001'

    def test_unknown_work_order(self, client):
        assert client.get('/api/work-orders/WO-00042').status_code == 404

    def test_sub_ledgers_and_close(self, client):
        wo_number = create(client)
        resp = client.post(f'/api/work-orders/{wo_number}/manpower', json={'name': 'Budi'})
        assert resp.get_json()['manpower'] == ['Budi']
        assert client.post(f'/api/work-orders/{wo_number}/manpower', json={'name': 'Budi'}).status_code == 400

        resp = client.post(f'/api/work-orders/{wo_number}/materials', json=sample_material())
        assert resp.get_json()['material']['total_price'] == 200
        assert client.delete(f'/api/work-orders/{wo_number}/materials/5').status_code == 404

        resp = client.post(f'/api/work-orders/{wo_number}/close',
                           json={'end_time': '09:00', 'work_description': 'Hose replaced'})
        wo = resp.get_json()['work_order']
        assert wo['status'] == 'RFU'
        assert wo['duration_minutes'] == 60
        assert wo['manpower'] == ['Budi']
        assert len(wo['materials']) == 1

        summary = client.get('/api/reports/summary').get_json()
        assert summary['rfu_work_orders'] == 1
        assert summary['total_maintenance_cost_text'] == 'Rp 200'
        assert client.get('/api/suggestions/manpower').get_json() == ['Budi']

    def test_close_requires_description(self, client):
        wo_number = create(client)
        resp = client.post(f'/api/work-orders/{wo_number}/close', json={'end_time': '09:00'})
        assert resp.status_code == 400
        assert client.get(f'/api/work-orders/{wo_number}').get_json()['work_order']['status'] == 'OPEN'

    def test_close_rejects_text_manpower(self, client):
        wo_number = create(client)
        resp = client.post(f'/api/work-orders/{wo_number}/close',
                           json={'end_time': '09:00', 'work_description': 'Fixed', 'manpower': 'Budi'})
        assert resp.status_code == 400
        wo = client.get(f'/api/work-orders/{wo_number}').get_json()['work_order']
        assert wo['status'] == 'OPEN'
        assert wo['manpower'] == []

    def test_close_rejects_non_object_materials(self, client):
        wo_number = create(client)
        resp = client.post(f'/api/work-orders/{wo_number}/close',
                           json={'end_time': '09:00', 'work_description': 'Fixed', 'materials': ['Oil']})
        assert resp.status_code == 400
        assert resp.get_json()['success'] is False
        assert client.get(f'/api/work-orders/{wo_number}').get_json()['work_order']['status'] == 'OPEN'

    def test_list_by_status(self, client):
        first = create(client)
        create(client)
        client.post(f'/api/work-orders/{first}/close', json={'end_time': '09:00', 'work_description': 'Fixed'})
        rfu = client.get('/api/work-orders?status=rfu').get_json()
        assert [wo['wo_number'] for wo in rfu['items']] == [first]
        assert client.get('/api/work-orders?status=OPEN').get_json()['total'] == 1
        assert client.get('/api/work-orders?status=DONE').status_code == 400


class TestEditGate:
    def test_edit_requires_login(self, client):
        wo_number = create(client)
        assert client.put(f'/api/work-orders/{wo_number}', json={'unit': 'EX7-43'}).status_code == 403

    def test_wrong_password(self, client):
        assert login(client, password='nope').status_code == 401

    def test_edit_after_login(self, client):
        wo_number = create(client)
        assert login(client).status_code == 200
        resp = client.put(f'/api/work-orders/{wo_number}',
                          json={'end_time': '08:45', 'work_description': 'Adjusted'})
        assert resp.status_code == 200
        assert resp.get_json()['work_order']['status'] == 'RFU'

        resp = client.put(f'/api/work-orders/{wo_number}', json={'work_description': ''})
        assert resp.get_json()['work_order']['status'] == 'OPEN'

        client.post('/api/edit-logout')
        assert client.put(f'/api/work-orders/{wo_number}', json={'unit': 'EX7-43'}).status_code == 403

    def test_rejected_edit(self, client):
        wo_number = create(client)
        login(client)
        resp = client.put(f'/api/work-orders/{wo_number}', json={'wo_number': 'WO-00009'})
        assert resp.status_code == 400


class TestDeletes:
    def test_delete_needs_confirmation(self, client):
        wo_number = create(client)
        assert client.delete(f'/api/work-orders/{wo_number}').status_code == 400
        assert client.get('/api/work-orders').get_json()['total'] == 1

        assert client.delete(f'/api/work-orders/{wo_number}?confirm=true').status_code == 200
        assert client.get('/api/work-orders').get_json()['total'] == 0
        assert client.get('/api/work-orders/next-number').get_json()['wo_number'] == 'WO-00002'

    def test_delete_unit_with_body_confirmation(self, client):
        resp = client.delete('/api/units/LT-01', json={'confirm': True})
        assert resp.status_code == 200
        assert len(client.get('/api/units').get_json()) == 2


class TestCatalogs:
    def test_units(self, client):
        resp = client.post('/api/units', json={'code': 'HD-7', 'type': 'HAULER', 'cost_per_operational_hour': 90000})
        assert resp.status_code == 200
        assert client.post('/api/units', json={'code': 'HD-7', 'type': 'HAULER'}).status_code == 400

    def test_spare_parts(self, client):
        resp = client.post('/api/spare-parts', json={'part_no': 'OF-100', 'name': 'Oil Filter', 'unit_price': 85000})
        assert resp.status_code == 200
        assert client.get('/api/spare-parts').get_json()[0]['unit_of_measure'] == 'pcs'
        assert client.delete('/api/spare-parts/OF-100?confirm=1').status_code == 200
        assert client.delete('/api/spare-parts/OF-100?confirm=1').status_code == 404

    def test_production(self, client):
        resp = client.post('/api/production', json={
            'date': '2024-05-01', 'unit': 'EX7-43', 'activity_type': 'Loading',
            'quantity': 600, 'duration_hours': 2, 'shift': 'Afternoon'})
        record = resp.get_json()['record']
        assert record['estimated_cost'] == 300000
        assert record['unit_type'] == 'A2B'

        summary = client.get('/api/reports/summary').get_json()
        assert summary['total_production_cost_text'] == 'Rp 300.000'
        assert client.delete(f"/api/production/{record['id']}?confirm=true").status_code == 200


class TestExport:
    def test_empty_export(self, client):
        assert client.get('/api/work-orders/export').status_code == 400

    def test_export_download(self, client):
        create(client)
        resp = client.get('/api/work-orders/export')
        assert resp.status_code == 200
        assert 'Work_Orders_Export.xlsx' in resp.headers['Content-Disposition']
        sheet = openpyxl.load_workbook(io.BytesIO(resp.data)).active
        assert sheet.cell(row=2, column=1).value == 'WO-00001'


def test_state_survives_restart(client, tmp_path):
    import plantops
    from conftest import offline_fetch

    wo_number = create(client)
    plantops.init_state(db_path=tmp_path / "plantops.db", fetch=offline_fetch)
    assert client.get(f'/api/work-orders/{wo_number}').status_code == 200
    assert client.get('/api/work-orders/next-number').get_json()['wo_number'] == 'WO-00002'


class TestStateAccess:
    def test_read_routes_report_storage_errors_as_json(self, client, monkeypatch):
        import plantops
        from errors import StorageError

        def broken_state():
            raise StorageError("disk unavailable")

        monkeypatch.setattr(plantops, 'get_state', broken_state)
        for path in ('/api/work-orders/next-number', '/api/units', '/api/spare-parts', '/api/production',
                     '/api/suggestions', '/api/suggestions/manpower', '/api/reports/summary'):
            resp = client.get(path)
            assert resp.status_code == 500, path
            assert resp.get_json()['success'] is False, path

    def test_state_is_loaded_once_on_first_use(self, tmp_path, monkeypatch):
        import plantops
        from conftest import offline_fetch

        calls = []
        real_init = plantops.init_state

        def counting_init():
            calls.append(1)
            return real_init(db_path=tmp_path / "lazy.db", fetch=offline_fetch)

        monkeypatch.setattr(plantops, '_state', None)
        monkeypatch.setattr(plantops, 'init_state', counting_init)
        first = plantops.get_state()
        assert plantops.get_state() is first
        assert calls == [1]
