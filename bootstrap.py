#!/usr/bin/env python3
"""
One-time startup sequence.
Every step waits for the previous one; the camera cannot serve them in
parallel. A failing step stops the sequence and the error reaches the caller.
"""

import logging

logger = logging.getLogger(__name__)

STEPS = (
    'time_sync',
    'device_info',
    'image_info',
    'capture_info',
    'upload_info',
    'data_report_info',
    'network_info',
    'post_process',
)


class BootstrapSequencer:
    def __init__(self, device, data_report, wlan, cellular, post_process=None):
        self.device = device
        self.data_report = data_report
        self.wlan = wlan
        self.cellular = cellular
        self.post_process = post_process

        self.completed = {step: False for step in STEPS}
        self.started = False

    @property
    def finished(self):
        return all(self.completed.values())

    def _device_info(self):
        self.device.get_device_info()
        # Region list depends on the certification group of the camera
        self.wlan.region = self.device.device_info.get('countryCode', self.wlan.region)

    def _network_info(self):
        if self.device.is_cellular:
            self.cellular.get_cellular_info()
        else:
            self.wlan.get_wlan_info()

    def _post_process(self):
        if self.post_process:
            self.post_process()

    def run(self):
        """Run the sequence once; later calls return False without doing anything"""
        if self.started:
            logger.info("Bootstrap already ran")
            return False
        self.started = True

        actions = {
            'time_sync': self.device.set_dev_time,
            'device_info': self._device_info,
            'image_info': self.device.get_image_info,
            'capture_info': self.device.get_capture_info,
            'upload_info': self.device.get_upload_info,
            'data_report_info': self.data_report.load,
            'network_info': self._network_info,
            'post_process': self._post_process,
        }
        for step in STEPS:
            logger.info(f"🚀 Bootstrap: {step}")
            actions[step]()
            self.completed[step] = True

        logger.info("✅ Bootstrap complete")
        return True
