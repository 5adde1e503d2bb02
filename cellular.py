#!/usr/bin/env python3
"""
Cellular (Cat-1) parameters, modem status and AT commands
"""

import threading
import logging

from device_api import URL
from errors import TransportError
from ui_services import translate

logger = logging.getLogger(__name__)

AUTHENTICATION_OPTIONS = {
    0: 'None',
    1: 'PAP',
    2: 'CHAP',
    3: 'PAP or CHAP',
}


class CellularSettings:
    def __init__(self, transport, dialog):
        self.transport = transport
        self.dialog = dialog

        self.param = {
            'apn': '',
            'user': '',
            'password': '',
            'pin': '',
            'authentication': 0,
        }
        self.status = {}
        self.mounted = False
        self.last_command_reply = None

        self.save_loading = False
        self.send_loading = False
        self._guard = threading.Lock()

    def get_cellular_info(self):
        """Fetch parameters, then modem status; errors propagate"""
        self.param = dict(self.transport.get_data(URL['getCellularParam']))
        self.get_cellular_status()
        self.mounted = True

    def get_cellular_status(self):
        self.status = dict(self.transport.get_data(URL['getCellularStatus']))
        return self.status

    def set_cellular_info(self, param=None):
        """Store new parameters and re-read them"""
        with self._guard:
            if self.save_loading:
                return False
            self.save_loading = True
        try:
            if param:
                self.param.update(param)
            logger.info(f"📶 {translate('cell.saveTip')}")
            self.transport.post_data(URL['setCellularParam'], dict(self.param))
            self.get_cellular_info()
            return True
        except TransportError as e:
            logger.error(f"❌ Saving cellular settings failed: {e}")
            self.dialog.show_tips_dialog(translate('networkError'))
            return False
        finally:
            self.save_loading = False

    def send_command(self, command):
        """Send an AT command; returns the modem's reply message or None"""
        with self._guard:
            if not command or self.send_loading or self.save_loading:
                return None
            self.send_loading = True
        try:
            res = self.transport.post_data(URL['sendCellularCommand'], {'command': command})
            self.last_command_reply = res.get('message', '')
            logger.info(f"AT command {command!r} -> result {res.get('result')}")
            return self.last_command_reply
        except TransportError as e:
            logger.error(f"❌ AT command failed: {e}")
            self.dialog.show_tips_dialog(translate('networkError'))
            return None
        finally:
            self.send_loading = False

    def to_dict(self):
        param = {k: v for k, v in self.param.items() if k not in ('password', 'pin')}
        param['authenticationLabel'] = AUTHENTICATION_OPTIONS.get(self.param.get('authentication'), 'None')
        return {
            'param': param,
            'status': self.status,
            'lastCommandReply': self.last_command_reply,
            'saveLoading': self.save_loading,
            'sendLoading': self.send_loading,
        }
