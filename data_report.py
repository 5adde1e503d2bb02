#!/usr/bin/env python3
"""
Data report (MQTT push) settings
"""

import threading
import logging

from device_api import URL
from errors import TransportError, ValidationError
from credential_files import CA, CERT, KEY, CredentialFilePipeline
from ui_services import translate

logger = logging.getLogger(__name__)

PLATFORM_OTHER_MQTT = 1
QOS_LEVELS = (0, 1, 2)

SLOT_NAME_KEYS = {
    CA: 'caName',
    CERT: 'certName',
    KEY: 'keyName',
}

FORM_FIELDS = (
    ('host', 'host'),
    ('mqttPort', 'port'),
    ('topic', 'topic'),
    ('clientId', 'client_id'),
    ('qos', 'qos'),
    ('username', 'username'),
    ('password', 'password'),
)


def platform_record(res):
    """The mqttPlatform record of a getDataReport answer, or {} if it is missing or malformed"""
    platform = res.get('mqttPlatform') if isinstance(res, dict) else None
    return platform if isinstance(platform, dict) else {}


class MqttTransportConfig:
    def __init__(self, pipeline):
        self.host = '192.168.1.1'
        self.port = 1883
        self.topic = 'NE101SensingCam/Snapshot'
        self.client_id = ''
        self.qos = 0
        self.username = ''
        self.password = ''
        self.tls_enabled = False

        # Owned by the credential pipeline
        self.pipeline = pipeline

        # Reported by the camera, refreshed only by the connection monitor
        self.is_connected = False

    @property
    def ca_slot(self):
        return self.pipeline.slot(CA)

    @property
    def cert_slot(self):
        return self.pipeline.slot(CERT)

    @property
    def key_slot(self):
        return self.pipeline.slot(KEY)

    def update_from_device(self, platform):
        """Apply a mqttPlatform record from getDataReport"""
        self.host = platform.get('host', self.host)
        self.port = platform.get('mqttPort', self.port)
        self.topic = platform.get('topic', self.topic)
        self.client_id = platform.get('clientId', self.client_id)
        self.qos = platform.get('qos', self.qos)
        self.username = platform.get('username', self.username)
        self.password = platform.get('password', self.password)
        self.tls_enabled = bool(platform.get('tlsEnable', self.tls_enabled))
        self.is_connected = bool(platform.get('isConnected', False))
        self.pipeline.load_names({
            role: platform.get(key, '') for role, key in SLOT_NAME_KEYS.items()
        })

    def snapshot(self):
        """Operator-editable fields, for restoring after a rejected form"""
        attrs = [attr for _, attr in FORM_FIELDS] + ['tls_enabled']
        return {attr: getattr(self, attr) for attr in attrs}

    def restore(self, values):
        for attr, value in values.items():
            setattr(self, attr, value)

    def apply_form(self, form):
        """Copy operator-editable fields; port is kept as entered until validated"""
        for field, attr in FORM_FIELDS:
            if field in form:
                setattr(self, attr, form[field])
        if 'tlsEnable' in form:
            self.tls_enabled = bool(form['tlsEnable'])

    def validate(self):
        if not str(self.host).strip():
            raise ValidationError(ValidationError.REQUIRED, translate('mqtt.hostRequired'), field='host')
        if not str(self.port).strip():
            raise ValidationError(ValidationError.REQUIRED, translate('mqtt.portRange'), field='mqttPort')
        try:
            port = int(self.port)
        except (TypeError, ValueError):
            raise ValidationError(ValidationError.OUT_OF_RANGE, translate('mqtt.portRange'), field='mqttPort')
        if not 1 <= port <= 65535:
            raise ValidationError(ValidationError.OUT_OF_RANGE, translate('mqtt.portRange'), field='mqttPort')
        if not str(self.topic).strip():
            raise ValidationError(ValidationError.REQUIRED, translate('mqtt.topicRequired'), field='topic')
        try:
            qos = int(self.qos)
        except (TypeError, ValueError):
            qos = None
        if qos not in QOS_LEVELS:
            raise ValidationError(ValidationError.OUT_OF_RANGE, translate('mqtt.qosRange'), field='qos')
        self.port = port
        self.qos = qos

    def to_payload(self):
        platform = {
            'host': self.host,
            'mqttPort': self.port,
            'topic': self.topic,
            'clientId': self.client_id,
            'qos': self.qos,
            'username': self.username,
            'password': self.password,
            'tlsEnable': int(self.tls_enabled),
        }
        for role, key in SLOT_NAME_KEYS.items():
            platform[key] = self.pipeline.slot(role).file_name
        return {
            'currentPlatformType': PLATFORM_OTHER_MQTT,
            'mqttPlatform': platform,
        }

    def to_dict(self):
        return {
            'host': self.host,
            'mqttPort': self.port,
            'topic': self.topic,
            'clientId': self.client_id,
            'qos': self.qos,
            'username': self.username,
            'tlsEnable': self.tls_enabled,
            'isConnected': self.is_connected,
            'files': self.pipeline.to_dict(),
        }


class DataReportSettings:
    def __init__(self, transport, dialog, loading=None):
        self.transport = transport
        self.dialog = dialog
        self.pipeline = CredentialFilePipeline(transport, dialog, loading)
        self.config = MqttTransportConfig(self.pipeline)
        self.mounted = False

        self.save_loading = False
        self._guard = threading.Lock()

    def load(self):
        """Fetch settings from the camera; errors propagate to the caller"""
        res = self.transport.get_data(URL['getDataReport'])
        self.config.update_from_device(platform_record(res))
        self.mounted = True
        logger.info(f"📡 MQTT settings loaded: {self.config.host}:{self.config.port}")

    def save(self, form=None):
        """Validate and store the MQTT settings; returns True on success"""
        with self._guard:
            if self.save_loading:
                return False
            self.save_loading = True
        try:
            previous = self.config.snapshot()
            if form:
                self.config.apply_form(form)
            try:
                self.config.validate()
            except ValidationError as e:
                self.config.restore(previous)
                logger.warning(f"⚠️  MQTT form invalid: {e.field}")
                self.dialog.show_tips_dialog(e.message)
                return False
            return self._post()
        finally:
            self.save_loading = False

    def set_tls_enabled(self, enabled):
        """Toggle TLS; turning it off is saved straight away without form checks"""
        self.config.tls_enabled = bool(enabled)
        if enabled:
            return True
        with self._guard:
            if self.save_loading:
                return False
            self.save_loading = True
        try:
            return self._post()
        finally:
            self.save_loading = False

    def _post(self):
        try:
            self.transport.post_data(URL['setDataReport'], self.config.to_payload())
        except TransportError as e:
            logger.error(f"❌ Saving MQTT settings failed: {e}")
            self.dialog.show_tips_dialog(translate('networkError'))
            return False
        logger.info("✅ MQTT settings saved")
        return True
