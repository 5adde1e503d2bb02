#!/usr/bin/env python3
"""
Camera Configuration Console
Drives the camera's HTTP control API and hosts a small local interface
for the operator
"""

import sys
import logging
from flask import Flask, render_template_string, request, jsonify

from device_api import DeviceTransport
from errors import TransportError
from ui_services import PendingDialogService, LoadingIndicator, set_language, translate
from device_settings import DeviceSettings
from data_report import DataReportSettings
from credential_files import CredentialFile, CONFIRMING_DELETE
from mqtt_monitor import MqttConnectionMonitor, POLL_INTERVAL
from wlan import WlanJoinMachine
from cellular import CellularSettings
from bootstrap import BootstrapSequencer

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)

DEFAULT_CONFIG = {
    "device_url": "http://192.168.1.1",
    "api_prefix": "/api/v1",
    "request_timeout": 5,
    "upload_timeout": 60,
    "monitor_interval": POLL_INTERVAL,
    "console_host": "127.0.0.1",
    "console_port": 5000,
    "language": "en_US",
}


class DeviceConsole:
    """Everything the console knows about one camera"""

    def __init__(self, transport, monitor_interval=POLL_INTERVAL, dialog=None, loading=None):
        self.transport = transport
        self.dialog = dialog or PendingDialogService()
        self.loading = loading or LoadingIndicator()

        self.device = DeviceSettings(transport)
        self.data_report = DataReportSettings(transport, self.dialog, self.loading)
        self.wlan = WlanJoinMachine(transport, self.dialog, self.loading)
        self.cellular = CellularSettings(transport, self.dialog)
        self.monitor = MqttConnectionMonitor(transport, self.data_report.config, monitor_interval)
        self.bootstrap = BootstrapSequencer(self.device, self.data_report, self.wlan, self.cellular)

    @classmethod
    def from_config(cls, config):
        transport = DeviceTransport(
            config["device_url"],
            api_prefix=config.get("api_prefix", "/api/v1"),
            timeout=config.get("request_timeout", 5),
            upload_timeout=config.get("upload_timeout", 60),
        )
        return cls(transport, monitor_interval=config.get("monitor_interval", POLL_INTERVAL))

    @property
    def pipeline(self):
        return self.data_report.pipeline

    def start(self):
        """Run the startup sequence, then begin watching the MQTT connection"""
        self.bootstrap.run()
        self.monitor.start()

    def close(self):
        self.monitor.stop()
        self.transport.close()

    def status(self):
        return {
            'status': 'running' if self.bootstrap.finished else 'starting',
            'bootstrap': self.bootstrap.completed,
            'device': self.device.to_dict(),
            'netmod': self.device.netmod,
            'wlan': self.wlan.to_dict(),
            'mqtt': self.data_report.config.to_dict(),
            'cellular': self.cellular.to_dict() if self.device.is_cellular else None,
            'loading': self.loading.visible,
            'dialog': self.dialog.describe(),
            'monitor_running': self.monitor.running,
        }


# Set by main() or by tests
console = None


def error_response(message, code=400):
    return jsonify({'status': 'error', 'message': message}), code


def credential_file_from_upload(upload):
    """Wrap an uploaded werkzeug file without reading it yet"""
    stream = upload.stream
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return CredentialFile(upload.filename or '', size, upload.read)


HTML_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Camera Configuration</title>
    <style>
        body { font-family: Arial, sans-serif; color: slategray; margin: 20px; }
        pre { background: #f4f4f4; padding: 10px; }
    </style>
</head>
<body>
    <h2>Camera Configuration</h2>
    <pre id="status">Loading...</pre>
    <script>
        function refresh() {
            fetch('/status')
                .then(r => r.json())
                .then(data => {
                    document.getElementById('status').textContent = JSON.stringify(data, null, 2);
                });
        }
        refresh();
        setInterval(refresh, 2000);
    </script>
</body>
</html>
"""


@app.route('/')
def index():
    """Main page"""
    return render_template_string(HTML_TEMPLATE)


@app.route('/status')
def status():
    """Everything the interface renders"""
    return jsonify(console.status())


# WLAN

@app.route('/api/wlan')
def wlan_info():
    return jsonify(console.wlan.to_dict())


@app.route('/api/wlan/scan', methods=['POST'])
def wlan_scan():
    try:
        started = console.wlan.get_wlan_info()
    except TransportError as e:
        logger.error(f"WLAN scan failed: {e}")
        console.dialog.show_tips_dialog(translate('networkError'))
        return error_response(translate('networkError'), 502)
    return jsonify({'status': 'success' if started else 'busy', 'wlan': console.wlan.to_dict()})


@app.route('/api/wlan/select', methods=['POST'])
def wlan_select():
    data = request.get_json(silent=True) or {}
    ssid = data.get('ssid')
    if not ssid:
        return error_response('ssid is required')
    if console.wlan.find(ssid) is None:
        return error_response(f'Unknown network {ssid}', 404)
    state = console.wlan.select_network(ssid)
    return jsonify({'status': 'success', 'state': state, 'dialog': console.dialog.describe()})


@app.route('/api/wlan/region', methods=['POST'])
def wlan_region():
    data = request.get_json(silent=True) or {}
    code = data.get('countryCode')
    if code not in console.wlan.region_options():
        return error_response(f'Unsupported region {code}')
    changed = console.wlan.change_region(code)
    return jsonify({'status': 'success' if changed else 'error', 'wlan': console.wlan.to_dict()})


# MQTT

@app.route('/api/mqtt')
def mqtt_info():
    return jsonify(console.data_report.config.to_dict())


@app.route('/api/mqtt', methods=['POST'])
def mqtt_save():
    form = request.get_json(silent=True) or {}
    saved = console.data_report.save(form)
    return jsonify({'status': 'success' if saved else 'error', 'dialog': console.dialog.describe()})


@app.route('/api/mqtt/tls', methods=['POST'])
def mqtt_tls():
    data = request.get_json(silent=True) or {}
    saved = console.data_report.set_tls_enabled(bool(data.get('enabled')))
    return jsonify({'status': 'success' if saved else 'error'})


@app.route('/api/mqtt/files/<role>', methods=['POST'])
def mqtt_file_upload(role):
    try:
        console.pipeline.slot(role)
    except KeyError:
        return error_response(f'Unknown credential slot {role}', 404)
    upload = request.files.get('file')
    credential_file = credential_file_from_upload(upload) if upload else None
    stored = console.pipeline.select_file(role, credential_file)
    return jsonify({
        'status': 'success' if stored else 'error',
        'file': console.pipeline.slot(role).to_dict(),
        'dialog': console.dialog.describe(),
    })


@app.route('/api/mqtt/files/<role>', methods=['DELETE'])
def mqtt_file_clear(role):
    try:
        console.pipeline.clear(role)
    except KeyError:
        return error_response(f'Unknown credential slot {role}', 404)
    return jsonify({
        'status': 'success',
        'file': console.pipeline.slot(role).to_dict(),
        'dialog': console.dialog.describe(),
    })


# Dialog

@app.route('/api/dialog')
def dialog_info():
    return jsonify({'dialog': console.dialog.describe()})


@app.route('/api/dialog/<int:dialog_id>/confirm', methods=['POST'])
def dialog_confirm(dialog_id):
    if not console.dialog.confirm(dialog_id):
        return error_response('Dialog is no longer open', 409)
    return jsonify({'status': 'success', 'dialog': console.dialog.describe()})


@app.route('/api/dialog/<int:dialog_id>/submit', methods=['POST'])
def dialog_submit(dialog_id):
    form = request.get_json(silent=True) or {}
    if not console.dialog.submit(dialog_id, {'password': form.get('password', '')}):
        return error_response('Dialog is no longer open', 409)
    return jsonify({'status': 'success', 'wlan': console.wlan.to_dict(), 'dialog': console.dialog.describe()})


@app.route('/api/dialog/<int:dialog_id>/dismiss', methods=['POST'])
def dialog_dismiss(dialog_id):
    dialog_type = console.dialog.dismiss(dialog_id)
    if dialog_type is None:
        return error_response('Dialog is no longer open', 409)
    if dialog_type == 'form':
        console.wlan.cancel()
    else:
        for role, slot in console.pipeline.slots.items():
            if slot.state == CONFIRMING_DELETE:
                console.pipeline.cancel_clear(role)
    return jsonify({'status': 'success'})


# Image and capture

def save_device_param(save, *args):
    try:
        saved = save(*args)
    except TransportError as e:
        logger.error(f"❌ Saving camera settings failed: {e}")
        console.dialog.show_tips_dialog(translate('networkError'))
        return error_response(translate('networkError'), 502)
    return jsonify({'status': 'success', 'param': saved})


@app.route('/api/image/light', methods=['POST'])
def image_light_save():
    return save_device_param(console.device.set_light_param, request.get_json(silent=True) or {})


@app.route('/api/image/light/refresh', methods=['POST'])
def image_light_refresh():
    try:
        value = console.device.refresh_light_value()
    except TransportError as e:
        logger.error(f"Light sensor refresh failed: {e}")
        return error_response(translate('networkError'), 502)
    return jsonify({'status': 'success', 'value': value})


@app.route('/api/image/cam', methods=['POST'])
def image_cam_save():
    return save_device_param(console.device.set_cam_param, request.get_json(silent=True) or {})


@app.route('/api/image/default', methods=['POST'])
def image_default():
    return save_device_param(console.device.set_image_default)


@app.route('/api/capture', methods=['POST'])
def capture_save():
    return save_device_param(console.device.set_capture_param, request.get_json(silent=True) or {})


# Cellular and device


@app.route('/api/cellular', methods=['POST'])
def cellular_save():
    param = request.get_json(silent=True) or {}
    saved = console.cellular.set_cellular_info(param)
    return jsonify({'status': 'success' if saved else 'error', 'cellular': console.cellular.to_dict()})


@app.route('/api/cellular/command', methods=['POST'])
def cellular_command():
    data = request.get_json(silent=True) or {}
    reply = console.cellular.send_command(data.get('command', ''))
    if reply is None:
        return error_response('Command was not sent')
    return jsonify({'status': 'success', 'message': reply})


@app.route('/sleep', methods=['POST'])
def sleep_mode():
    """Ask before sending the camera to sleep"""
    console.dialog.show_tips_dialog(translate('sleepModeTips'), True, console.device.set_dev_sleep)
    return jsonify({'status': 'success', 'dialog': console.dialog.describe()})


def load_config():
    config = dict(DEFAULT_CONFIG)
    try:
        from console_config import CONSOLE_CONFIG
        config.update(CONSOLE_CONFIG)
        print("✅ Console configuration loaded")
    except ImportError:
        print("⚠️  No console_config.py found. Copy console_config_example.py to console_config.py. Using defaults.")
    if len(sys.argv) > 1:
        config["device_url"] = sys.argv[1]
    return config


def main():
    """Main function"""
    global console
    print("🎥 Starting Camera Configuration Console...")

    config = load_config()
    set_language(config.get("language", "en_US"))
    console = DeviceConsole.from_config(config)

    print(f"📡 Camera: {config['device_url']}")
    try:
        console.start()
    except TransportError as e:
        print(f"❌ Could not read the camera configuration: {e}")
        console.close()
        return

    print("📱 Access the console at:")
    print(f"   - http://{config['console_host']}:{config['console_port']}")
    print("\n🛑 Press Ctrl+C to stop\n")

    try:
        app.run(
            host=config['console_host'],
            port=config['console_port'],
            debug=False,
            threaded=True,
            use_reloader=False
        )
    except KeyboardInterrupt:
        print("\n🛑 Shutting down console...")
    finally:
        console.close()
        print("✅ Console stopped")


if __name__ == '__main__':
    main()
