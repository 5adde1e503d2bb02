#!/usr/bin/env python3
"""
WLAN join state machine

Scans the camera's visible networks, collects passwords through the dialog
service and joins. Only one network is ever Connecting or Connected.
"""

import threading
import logging

from device_api import URL, RES_OK, RES_WIFI_CONNECTED, RES_WIFI_DISCONNECTED
from errors import TransportError, DomainRejection
from ui_services import translate

logger = logging.getLogger(__name__)

# NetworkEntry.status values, as reported by the camera
DISCONNECTED = -1
CONNECTING = 0
CONNECTED = 1

# Machine states
IDLE = 'Idle'
AWAITING_PASSWORD = 'AwaitingPassword'
JOINING = 'Connecting'
JOINED = 'Connected'
FAILED = 'Failed'

# Commands accepted in each state
ALLOWED_COMMANDS = {
    IDLE: {'select_network', 'scan', 'change_region'},
    AWAITING_PASSWORD: {'select_network', 'attempt_join', 'cancel', 'scan', 'change_region'},
    JOINING: set(),
    JOINED: {'select_network', 'scan', 'change_region'},
    FAILED: {'select_network', 'scan', 'change_region'},
}

REGION_OPTIONS_CE = ['EU', 'IN']
REGION_OPTIONS_FCC = ['AU', 'KR', 'NZ', 'SG', 'US']


def rssi_level(rssi):
    """Convert a dBm reading into 0-4 signal bars"""
    if rssi < -88:
        return 0
    elif rssi < -77:
        return 1
    elif rssi < -66:
        return 2
    elif rssi < -55:
        return 3
    return 4


def region_options(country_code):
    """Regions the operator may pick, depending on the camera's certification group"""
    if country_code in REGION_OPTIONS_CE:
        return list(REGION_OPTIONS_CE)
    return list(REGION_OPTIONS_FCC)


class NetworkEntry:
    def __init__(self, ssid, rssi, is_encrypted, status=DISCONNECTED):
        self.ssid = ssid
        self.rssi = rssi
        self.is_encrypted = is_encrypted
        self.status = status

    @classmethod
    def from_node(cls, node):
        return cls(
            ssid=node.get('ssid', ''),
            rssi=int(node.get('rssi', -100)),
            is_encrypted=bool(node.get('bAuthenticate', 0)),
            status=int(node.get('status', DISCONNECTED)),
        )

    def to_dict(self):
        return {
            'ssid': self.ssid,
            'rssi': self.rssi,
            'level': rssi_level(self.rssi),
            'bAuthenticate': int(self.is_encrypted),
            'status': self.status,
        }

    def __repr__(self):
        return f"NetworkEntry({self.ssid!r}, rssi={self.rssi}, status={self.status})"


class PendingJoinAttempt:
    def __init__(self, target):
        self.target = target
        self.password = ""
        self.password_rejected = False


class WlanJoinMachine:
    def __init__(self, transport, dialog, loading=None):
        self.transport = transport
        self.dialog = dialog
        self.loading = loading

        self.networks = []
        self.current = None
        self.pending = None
        self.state = IDLE
        self.region = ''
        self.last_connection = {}

        self.wlan_loading = False
        self.change_region_loading = False
        self._lock = threading.Lock()

    def _accepts(self, command):
        if command in ALLOWED_COMMANDS[self.state]:
            return True
        logger.info(f"Ignoring {command} while {self.state}")
        return False

    def find(self, ssid):
        for entry in self.networks:
            if entry.ssid == ssid:
                return entry
        return None

    def _settle(self):
        """State to fall back to when no attempt is pending"""
        if self.current is not None and self.current.status == CONNECTED:
            return JOINED
        return IDLE

    def _ask_password(self, show_error):
        self.dialog.show_form_dialog(
            {'ssid': self.pending.target.ssid, 'show_error': show_error},
            self.attempt_join
        )

    def select_network(self, entry):
        """Operator clicked a network (entry or SSID)"""
        with self._lock:
            if not isinstance(entry, NetworkEntry):
                entry = self.find(entry)
                if entry is None:
                    logger.warning("Selected network is not in the current scan")
                    return self.state
            # Clicking the connected network does nothing
            if entry.status == CONNECTED:
                return self.state
            if not self._accepts('select_network'):
                return self.state

            self.pending = PendingJoinAttempt(entry)
            if entry.is_encrypted:
                self.state = AWAITING_PASSWORD
            else:
                self._begin_join('')

        if entry.is_encrypted:
            self._ask_password(False)
        else:
            self._join()
        return self.state

    def attempt_join(self, credentials):
        """Callback of the password dialog"""
        if isinstance(credentials, dict):
            password = credentials.get('password') or ''
        else:
            password = credentials or ''

        with self._lock:
            if self.pending is None or not self._accepts('attempt_join'):
                return self.state
            missing = self.pending.target.is_encrypted and not password
            if missing:
                self.pending.password_rejected = True
            else:
                self._begin_join(password)

        if missing:
            self._ask_password(True)
        else:
            self._join()
        return self.state

    def cancel(self):
        """Operator closed the password dialog"""
        with self._lock:
            if not self._accepts('cancel'):
                return self.state
            self.pending = None
            self.state = self._settle()
            return self.state

    def _begin_join(self, password):
        target = self.pending.target
        self.pending.password = password

        # Demote whatever was connected before
        if self.current is not None and self.current is not target:
            self.current.status = DISCONNECTED
        for entry in self.networks:
            if entry is not target and entry.status != DISCONNECTED:
                entry.status = DISCONNECTED

        self.current = target
        target.status = CONNECTING
        self.state = JOINING
        logger.info(f"📶 Joining {target.ssid}")

    def _join(self):
        attempt = self.pending
        target = attempt.target
        try:
            res = self.transport.post_data(URL['setWifiParam'], {
                'ssid': target.ssid,
                'password': attempt.password,
            })
        except TransportError as e:
            logger.error(f"❌ Join request for {target.ssid} failed: {e}")
            self._join_failed(target)
            return

        result = res.get('result')
        if result == RES_WIFI_CONNECTED:
            with self._lock:
                target.status = CONNECTED
                self.pending = None
                self.state = JOINED
            logger.info(f"✅ Connected to {target.ssid}")
            return

        rejection = DomainRejection(result)
        if result == RES_WIFI_DISCONNECTED and target.is_encrypted:
            logger.warning(f"⚠️  {target.ssid}: {rejection}, asking for the password again")
            with self._lock:
                target.status = DISCONNECTED
                attempt.password_rejected = True
                self.state = AWAITING_PASSWORD
            self._ask_password(True)
            return

        logger.warning(f"⚠️  {target.ssid}: {rejection}")
        self._join_failed(target)

    def _join_failed(self, target):
        with self._lock:
            target.status = DISCONNECTED
            self.pending = None
            self.state = FAILED
        self.dialog.show_tips_dialog(translate('wlan.connectFailTips'))

    def get_wlan_info(self):
        """Rescan and find the last joined network in the new list; errors propagate"""
        with self._lock:
            if self.wlan_loading or not self._accepts('scan'):
                return False
            self.wlan_loading = True
            self.networks = []
        if self.loading:
            self.loading.show()
        try:
            res = self.transport.get_data(URL['getWifiList'])
            networks = []
            seen = {}
            for node in res.get('nodes') or []:
                entry = NetworkEntry.from_node(node)
                # SSIDs are unique per scan, keep the strongest
                if entry.ssid in seen:
                    if entry.rssi > seen[entry.ssid].rssi:
                        networks[networks.index(seen[entry.ssid])] = entry
                        seen[entry.ssid] = entry
                    continue
                seen[entry.ssid] = entry
                networks.append(entry)

            last = self.transport.get_data(URL['getWifiParam'])
        except TransportError:
            # The old entries are gone, so nothing can stay current or pending
            with self._lock:
                self.current = None
                self.pending = None
                self.state = self._settle()
            raise
        finally:
            self.wlan_loading = False
            if self.loading:
                self.loading.hide()

        with self._lock:
            self.networks = networks
            self.last_connection = {
                'ssid': last.get('ssid', ''),
                'isConnected': bool(last.get('isConnected')),
            }
            for entry in self.networks:
                entry.status = DISCONNECTED
            self.current = self.find(self.last_connection['ssid'])
            if self.current is not None:
                self.current.status = CONNECTED if self.last_connection['isConnected'] else DISCONNECTED
            self.pending = None
            self.state = self._settle()
        logger.info(f"📡 Found {len(self.networks)} networks")
        return True

    def change_region(self, code):
        """Set the WLAN country code and rescan; True only when both happened, failures only raise an alert"""
        with self._lock:
            if self.change_region_loading or not self._accepts('change_region'):
                return False
            self.change_region_loading = True
        try:
            res = self.transport.post_data(URL['setDevInfo'], {'countryCode': code})
            if res.get('result') != RES_OK:
                raise DomainRejection(res.get('result'), 'setDevInfo')
            self.region = code
            logger.info(f"🌍 WLAN region set to {code}")
            if not self.get_wlan_info():
                logger.warning(f"⚠️  Region set to {code} but a scan is already running, list not refreshed")
                return False
            return True
        except (TransportError, DomainRejection) as e:
            logger.error(f"❌ Region change to {code} failed: {e}")
            self.dialog.show_tips_dialog(translate('networkError'))
            return False
        finally:
            self.change_region_loading = False

    def region_options(self):
        return region_options(self.region)

    def to_dict(self):
        return {
            'state': self.state,
            'region': self.region,
            'regionOptions': self.region_options(),
            'networks': [entry.to_dict() for entry in self.networks],
            'current': self.current.ssid if self.current is not None else None,
            'pending': {
                'ssid': self.pending.target.ssid,
                'passwordRejected': self.pending.password_rejected,
            } if self.pending is not None else None,
            'wlanLoading': self.wlan_loading,
            'changeRegionLoading': self.change_region_loading,
        }
