import io

import pytest

import config_console
from config_console import DeviceConsole
from errors import TransportError
from fakes import FakeTransport


ROUTES = {
    'setDevTime': {'result': 1000},
    'getDevInfo': {'netmod': 'wifi', 'countryCode': 'US', 'secretKey': 'hidden'},
    'getLightParam': {'lightMode': 0, 'value': 40, 'duty': 50, 'startTime': '23:00', 'endTime': '07:00'},
    'getCamParam': {'brightness': 30, 'gain': 15},
    'setLightParam': {'result': 1000},
    'setCamParam': {'result': 1000},
    'setCapParam': {'result': 1000},
    'getCapParam': {},
    'getUploadParam': {},
    'getDataReport': {'mqttPlatform': {'host': 'broker', 'mqttPort': 1883, 'topic': 't', 'caName': 'ca.pem'}},
    'getWifiList': {'nodes': [
        {'ssid': 'Home', 'rssi': -60, 'bAuthenticate': 1, 'status': -1},
        {'ssid': 'Cafe', 'rssi': -75, 'bAuthenticate': 0, 'status': -1},
    ]},
    'getWifiParam': {'ssid': 'Cafe', 'isConnected': 0},
    'setWifiParam': {'result': 1001},
    'setDevInfo': {'result': 1000},
    'setDataReport': {'result': 1000},
    'uploadCertFile': {'result': 1000},
    'deleteCaFile': {'result': 1000},
}


@pytest.fixture
def device():
    transport = FakeTransport(dict(ROUTES))
    device_console = DeviceConsole(transport)
    device_console.bootstrap.run()
    config_console.console = device_console
    yield device_console
    device_console.close()
    config_console.console = None


@pytest.fixture
def client(device):
    config_console.app.config['TESTING'] = True
    with config_console.app.test_client() as client:
        yield client


def test_status_hides_secrets(client, device):
    data = client.get('/status').get_json()

    assert data['status'] == 'running'
    assert data['netmod'] == 'wifi'
    assert 'secretKey' not in data['device']['deviceInfo']
    assert 'password' not in data['mqtt']
    assert [n['ssid'] for n in data['wlan']['networks']] == ['Home', 'Cafe']
    assert data['cellular'] is None


def test_join_encrypted_network_through_dialog(client, device):
    response = client.post('/api/wlan/select', json={'ssid': 'Home'})
    body = response.get_json()
    assert body['state'] == 'AwaitingPassword'
    dialog_id = body['dialog']['id']

    body = client.post(f'/api/dialog/{dialog_id}/submit', json={'password': 'secret'}).get_json()

    assert body['wlan']['state'] == 'Connected'
    assert device.transport.calls[-1] == ('POST', 'setWifiParam', {'ssid': 'Home', 'password': 'secret'})
    statuses = {n['ssid']: n['status'] for n in body['wlan']['networks']}
    assert statuses == {'Home': 1, 'Cafe': -1}


def test_dismissing_password_dialog_cancels_join(client, device):
    dialog_id = client.post('/api/wlan/select', json={'ssid': 'Home'}).get_json()['dialog']['id']

    assert client.post(f'/api/dialog/{dialog_id}/dismiss').status_code == 200
    assert device.wlan.state == 'Idle'
    assert client.post(f'/api/dialog/{dialog_id}/submit', json={'password': 'x'}).status_code == 409


def test_select_unknown_network(client):
    assert client.post('/api/wlan/select', json={'ssid': 'Nope'}).status_code == 404
    assert client.post('/api/wlan/select', json={}).status_code == 400


def test_region_must_be_offered(client, device):
    assert client.post('/api/wlan/region', json={'countryCode': 'EU'}).status_code == 400

    body = client.post('/api/wlan/region', json={'countryCode': 'KR'}).get_json()
    assert body['status'] == 'success'
    assert body['wlan']['region'] == 'KR'


def test_upload_credential_file(client, device):
    response = client.post(
        '/api/mqtt/files/cert',
        data={'file': (io.BytesIO(b'-----BEGIN CERTIFICATE-----'), 'client.crt')},
        content_type='multipart/form-data',
    )
    body = response.get_json()

    assert body['status'] == 'success'
    assert body['file']['file_name'] == 'client.crt'
    assert device.transport.calls[-1] == ('BINARY', 'uploadCertFile', {'filename': 'client.crt', 'size': 27})


def test_upload_rejects_bad_extension(client, device):
    count = len(device.transport.calls)
    body = client.post(
        '/api/mqtt/files/key',
        data={'file': (io.BytesIO(b'abc'), 'client.txt')},
        content_type='multipart/form-data',
    ).get_json()

    assert body['status'] == 'error'
    assert body['dialog']['type'] == 'tips'
    assert len(device.transport.calls) == count


def test_clear_credential_file_after_confirmation(client, device):
    body = client.delete('/api/mqtt/files/ca').get_json()
    assert body['file']['state'] == 'ConfirmingDelete'

    client.post(f"/api/dialog/{body['dialog']['id']}/confirm")

    assert device.pipeline.slot('ca').file_name == ''
    assert device.transport.calls[-1] == ('POST', 'deleteCaFile', {'filename': 'ca.pem'})


def test_dismissing_delete_keeps_file(client, device):
    body = client.delete('/api/mqtt/files/ca').get_json()
    client.post(f"/api/dialog/{body['dialog']['id']}/dismiss")

    assert device.pipeline.slot('ca').state == 'Present'


def test_unknown_slot(client):
    assert client.delete('/api/mqtt/files/bundle').status_code == 404
    assert client.post('/api/mqtt/files/bundle').status_code == 404


def test_mqtt_save(client, device):
    body = client.post('/api/mqtt', json={'host': 'broker2', 'mqttPort': 8883, 'topic': 'cam'}).get_json()

    assert body['status'] == 'success'
    assert device.transport.calls[-1][2]['mqttPlatform']['host'] == 'broker2'


def test_console_close_stops_monitor(device):
    device.monitor.interval = 0.01
    device.monitor.start()
    device.close()

    assert not device.monitor.running
    assert device.transport.closed


def test_save_light_and_capture_settings(client, device):
    body = client.post('/api/image/light', json={'lightMode': 2}).get_json()
    assert body['status'] == 'success'
    assert device.transport.calls[-1][:2] == ('POST', 'setLightParam')
    assert device.transport.calls[-1][2]['lightMode'] == 2

    body = client.post('/api/capture', json={'bScheCap': 0}).get_json()
    assert body['status'] == 'success'
    assert device.transport.calls[-1] == ('POST', 'setCapParam', {'bScheCap': 0})


def test_reset_image_adjustment(client, device):
    body = client.post('/api/image/default').get_json()

    assert body['param']['brightness'] == 0
    assert device.transport.calls[-1][2]['gain'] == 15


def test_refresh_light_sensor(client, device):
    device.transport.routes['getLightParam'] = {'value': 7}

    body = client.post('/api/image/light/refresh').get_json()

    assert body['value'] == 7
    assert device.device.light_param['duty'] == 50


def test_image_save_failure_reports_network_error(client, device):
    device.transport.routes['setCamParam'] = TransportError(None, "down")

    response = client.post('/api/image/cam', json={'brightness': 10})

    assert response.status_code == 502
    assert device.dialog.describe()['type'] == 'tips'
    assert device.device.cam_param['brightness'] == 30


def test_second_delete_prompt_releases_first_slot(client, device):
    device.pipeline.load_names({'ca': 'ca.pem', 'cert': 'client.crt', 'key': ''})
    client.delete('/api/mqtt/files/ca')
    body = client.delete('/api/mqtt/files/cert').get_json()

    client.post(f"/api/dialog/{body['dialog']['id']}/dismiss")

    assert device.pipeline.slot('ca').state == 'Present'
    assert device.pipeline.slot('cert').state == 'Present'
