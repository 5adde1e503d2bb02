import pytest

from errors import TransportError
from fakes import FakeTransport, RecordingDialog
from device_settings import DeviceSettings, timezone_code
from data_report import DataReportSettings
from wlan import WlanJoinMachine
from cellular import CellularSettings
from bootstrap import BootstrapSequencer, STEPS


def _routes(netmod):
    return {
        'setDevTime': {'result': 1000},
        'getDevInfo': {'netmod': netmod, 'countryCode': 'EU', 'model': 'NE101'},
        'getLightParam': {'lightMode': 0},
        'getCamParam': {'brightness': 0},
        'getCapParam': {'bScheCap': 1},
        'getUploadParam': {'uploadMode': 0},
        'getDataReport': {'mqttPlatform': {'host': 'broker', 'mqttPort': 8883, 'caName': 'ca.pem'}},
        'getCellularParam': {'apn': 'internet'},
        'getCellularStatus': {'networkStatus': 'Connected'},
        'getWifiList': {'nodes': []},
        'getWifiParam': {'ssid': '', 'isConnected': 0},
    }


def _sequencer(routes, post_process=None):
    transport = FakeTransport(routes)
    dialog = RecordingDialog()
    device = DeviceSettings(transport)
    data_report = DataReportSettings(transport, dialog)
    wlan = WlanJoinMachine(transport, dialog)
    cellular = CellularSettings(transport, dialog)
    sequencer = BootstrapSequencer(device, data_report, wlan, cellular, post_process)
    return sequencer, transport


def test_wifi_camera_sequence_order():
    sequencer, transport = _sequencer(_routes('wifi'))

    assert sequencer.run() is True

    assert transport.paths() == [
        'setDevTime', 'getDevInfo', 'getLightParam', 'getCamParam', 'getCapParam',
        'getUploadParam', 'getDataReport', 'getWifiList', 'getWifiParam',
    ]
    assert 'getCellularParam' not in transport.paths()
    assert sequencer.finished
    assert sequencer.wlan.region == 'EU'
    assert sequencer.data_report.pipeline.slot('ca').file_name == 'ca.pem'


def test_cellular_camera_fetches_cellular_instead_of_wifi():
    sequencer, transport = _sequencer(_routes('cat1'))

    sequencer.run()

    paths = transport.paths()
    assert paths[-2:] == ['getCellularParam', 'getCellularStatus']
    assert 'getWifiList' not in paths
    assert sequencer.cellular.mounted


def test_failure_stops_remaining_steps():
    routes = _routes('wifi')
    routes['getCapParam'] = TransportError(500, "boom")
    sequencer, transport = _sequencer(routes)

    with pytest.raises(TransportError):
        sequencer.run()

    assert transport.paths()[-1] == 'getCapParam'
    assert sequencer.completed['image_info'] is True
    assert sequencer.completed['capture_info'] is False
    assert not any(sequencer.completed[step] for step in STEPS[STEPS.index('capture_info'):])


def test_runs_only_once():
    calls = []
    sequencer, transport = _sequencer(_routes('wifi'), post_process=lambda: calls.append('done'))

    sequencer.run()
    count = len(transport.calls)
    assert sequencer.run() is False

    assert len(transport.calls) == count
    assert calls == ['done']


def test_time_sync_payload():
    transport = FakeTransport({'setDevTime': {'result': 1000}})
    DeviceSettings(transport).set_dev_time(now=1700000000.7, tz='UTC+08:00')

    assert transport.calls == [('POST', 'setDevTime', {'tz': 'UTC+08:00', 'ts': 1700000000})]


def test_timezone_code():
    assert timezone_code(8 * 3600) == 'UTC+08:00'
    assert timezone_code(-(5 * 3600 + 30 * 60)) == 'UTC-05:30'
    assert timezone_code(0) == 'UTC+00:00'
