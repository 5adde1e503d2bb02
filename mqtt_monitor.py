#!/usr/bin/env python3
"""
MQTT connection monitor
Polls the camera's data report and keeps isConnected up to date
"""

import threading
import logging

from device_api import URL
from errors import TransportError
from data_report import platform_record

logger = logging.getLogger(__name__)

POLL_INTERVAL = 2.0


class MqttConnectionMonitor:
    def __init__(self, transport, config, interval=POLL_INTERVAL):
        self.transport = transport
        self.config = config
        self.interval = interval

        self.poll_count = 0
        self.consecutive_failures = 0
        self._stop_event = threading.Event()
        self._thread = None
        self._lock = threading.Lock()

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start polling; does nothing if already running"""
        with self._lock:
            if self.running:
                return False
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="mqtt-monitor", daemon=True)
            self._thread.start()
        logger.info(f"🔍 MQTT connection monitor started ({self.interval}s interval)")
        return True

    def stop(self, timeout=5):
        """Stop polling and wait for the loop to exit"""
        with self._lock:
            thread = self._thread
            self._stop_event.set()
            self._thread = None
        if thread is not None:
            if thread is not threading.current_thread():
                thread.join(timeout=timeout)
            logger.info("MQTT connection monitor stopped")

    def poll_once(self):
        """Fetch the status once and update the config; returns the new value or None on failure"""
        self.poll_count += 1
        try:
            res = self.transport.get_data(URL['getDataReport'])
        except TransportError as e:
            self.consecutive_failures += 1
            logger.warning(f"⚠️  MQTT status poll failed ({self.consecutive_failures} in a row): {e}")
            return None

        self.consecutive_failures = 0
        connected = bool(platform_record(res).get('isConnected', False))
        if connected != self.config.is_connected:
            logger.info(f"MQTT {'connected' if connected else 'disconnected'}")
        self.config.is_connected = connected
        return connected

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("❌ MQTT status poll crashed, will retry")
            # Same delay after success and failure
            self._stop_event.wait(self.interval)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
