#!/usr/bin/env python3
"""
Device-level settings: clock, identity, image, capture schedule and upload
"""

import time
import logging

from device_api import URL

logger = logging.getLogger(__name__)

NETMOD_CELLULAR = 'cat1'

LIGHT_FIELDS = ('lightMode', 'threshold', 'duty', 'startTime', 'endTime')
CAM_FIELDS = ('brightness', 'contrast', 'saturation', 'aeLevel', 'bAgc',
              'gainCeiling', 'gain', 'bHorizonetal', 'bVertical')
CAPTURE_FIELDS = ('bScheCap', 'scheCapMode', 'timedNodes', 'timedCount',
                  'intervalValue', 'intervalUnit', 'bAlarmInCap', 'bButtonCap')

# Exposure and gain are left as they are
IMAGE_DEFAULTS = {
    'brightness': 0,
    'contrast': 0,
    'saturation': 0,
    'bHorizonetal': 0,
    'bVertical': 0,
}


def next_minute(hhmm):
    """'23:59' -> '00:00'"""
    hour, minute = (int(part) for part in hhmm.split(':'))
    total = (hour * 60 + minute + 1) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def timezone_code(offset_seconds=None):
    """Host UTC offset as a code like UTC+08:00"""
    if offset_seconds is None:
        if time.localtime().tm_isdst > 0 and time.daylight:
            offset_seconds = -time.altzone
        else:
            offset_seconds = -time.timezone
    sign = '+' if offset_seconds >= 0 else '-'
    offset_seconds = abs(int(offset_seconds))
    hours = offset_seconds // 3600
    minutes = (offset_seconds % 3600) // 60
    return f"UTC{sign}{hours:02d}:{minutes:02d}"


class DeviceSettings:
    def __init__(self, transport):
        self.transport = transport

        self.device_info = {}
        self.light_param = {}
        self.cam_param = {}
        self.capture_param = {}
        self.upload_param = {}

    @property
    def netmod(self):
        return self.device_info.get('netmod', '')

    @property
    def is_cellular(self):
        return self.netmod == NETMOD_CELLULAR

    def set_dev_time(self, now=None, tz=None):
        """Push the host clock to the camera"""
        ts = int(now if now is not None else time.time())
        tz = tz or timezone_code()
        self.transport.post_data(URL['setDevTime'], {'tz': tz, 'ts': ts})
        logger.info(f"🕒 Camera clock set to {ts} ({tz})")

    def get_device_info(self):
        self.device_info = dict(self.transport.get_data(URL['getDevInfo']))
        logger.info(f"📷 {self.device_info.get('model', 'Camera')} "
                    f"SN {self.device_info.get('sn', '-')} "
                    f"firmware {self.device_info.get('softVersion', '-')} "
                    f"network {self.netmod or '-'}")
        return self.device_info

    def get_image_info(self):
        """Light settings first, then camera image parameters"""
        self.light_param = dict(self.transport.get_data(URL['getLightParam']))
        self.cam_param = dict(self.transport.get_data(URL['getCamParam']))

    def get_capture_info(self):
        self.capture_param = dict(self.transport.get_data(URL['getCapParam']))

    def get_upload_info(self):
        self.upload_param = dict(self.transport.get_data(URL['getUploadParam']))

    def refresh_light_value(self):
        """Re-read the light sensor reading only"""
        value = self.transport.get_data(URL['getLightParam']).get('value')
        self.light_param['value'] = value
        return value

    def set_light_param(self, param):
        light = {**self.light_param, **param}
        if light.get('startTime') and light.get('startTime') == light.get('endTime'):
            light['endTime'] = next_minute(light['endTime'])
        self.transport.post_data(URL['setLightParam'], {k: light[k] for k in LIGHT_FIELDS if k in light})
        self.light_param = light
        logger.info(f"💡 Light mode {light.get('lightMode')} saved")
        return light

    def set_cam_param(self, param):
        cam = {**self.cam_param, **param}
        self.transport.post_data(URL['setCamParam'], {k: cam[k] for k in CAM_FIELDS if k in cam})
        self.cam_param = cam
        logger.info("🎨 Image adjustment saved")
        return cam

    def set_image_default(self):
        return self.set_cam_param(IMAGE_DEFAULTS)

    def set_capture_param(self, param):
        capture = {**self.capture_param, **param}
        if isinstance(capture.get('timedNodes'), list):
            capture['timedCount'] = len(capture['timedNodes'])
        self.transport.post_data(URL['setCapParam'], {k: capture[k] for k in CAPTURE_FIELDS if k in capture})
        self.capture_param = capture
        logger.info("📅 Capture schedule saved")
        return capture

    def set_dev_sleep(self):
        logger.info("😴 Sending camera to sleep")
        return self.transport.post_data(URL['setDevSleep'])

    def to_dict(self):
        info = {k: v for k, v in self.device_info.items() if k != 'secretKey'}
        return {
            'deviceInfo': info,
            'lightParam': self.light_param,
            'camParam': self.cam_param,
            'captureParam': self.capture_param,
            'uploadParam': self.upload_param,
        }
