#!/usr/bin/env python3
"""
Camera HTTP API client
The camera's httpserver cannot handle concurrent requests, so every call
goes through one lock and waits for the previous call to finish.
"""

import threading
import logging
import requests

from errors import TransportError

logger = logging.getLogger(__name__)

# Result codes found in JSON bodies
RES_OK = 1000
RES_WIFI_CONNECTED = 1001
RES_WIFI_DISCONNECTED = 1002

URL = {
    'setDevTime': 'setDevTime',
    'getDevInfo': 'getDevInfo',
    'setDevInfo': 'setDevInfo',
    'setDevSleep': 'setDevSleep',
    'getCamParam': 'getCamParam',
    'setCamParam': 'setCamParam',
    'getLightParam': 'getLightParam',
    'setLightParam': 'setLightParam',
    'getCapParam': 'getCapParam',
    'setCapParam': 'setCapParam',
    'getUploadParam': 'getUploadParam',
    'getDataReport': 'getDataReport',
    'setDataReport': 'setDataReport',
    'getCellularParam': 'getCellularParam',
    'setCellularParam': 'setCellularParam',
    'getCellularStatus': 'getCellularStatus',
    'sendCellularCommand': 'sendCellularCommand',
    'getWifiList': 'getWifiList',
    'getWifiParam': 'getWifiParam',
    'setWifiParam': 'setWifiParam',
    'uploadCaFile': 'uploadCaFile',
    'uploadCertFile': 'uploadCertFile',
    'uploadKeyFile': 'uploadKeyFile',
    'deleteCaFile': 'deleteCaFile',
    'deleteCertFile': 'deleteCertFile',
    'deleteKeyFile': 'deleteKeyFile',
}


class DeviceTransport:
    def __init__(self, device_url, api_prefix="/api/v1", timeout=5, upload_timeout=60, session=None):
        self.device_url = device_url.rstrip('/')
        self.api_prefix = '/' + api_prefix.strip('/') if api_prefix else ''
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self.session = session or requests.Session()

        # One request at a time, for every caller
        self.request_lock = threading.Lock()
        self.request_count = 0

    def url_for(self, path):
        """Build the full URL for an endpoint name or path"""
        return f"{self.device_url}{self.api_prefix}/{path.lstrip('/')}"

    def send(self, method, path, body=None):
        """Send a JSON request and return the decoded JSON body"""
        method = method.upper()
        kwargs = {'timeout': self.timeout}
        if body is not None:
            kwargs['json'] = body
        elif method == 'POST':
            kwargs['json'] = {}
        return self._request(method, path, **kwargs)

    def get_data(self, path):
        return self.send('GET', path)

    def post_data(self, path, body=None):
        return self.send('POST', path, body)

    def post_binary(self, path, filename, data):
        """Upload a named binary object as multipart form data"""
        files = {
            'file': (filename, data, 'application/octet-stream')
        }
        return self._request(
            'POST',
            path,
            files=files,
            data={'filename': filename},
            timeout=self.upload_timeout
        )

    def _request(self, method, path, **kwargs):
        url = self.url_for(path)
        with self.request_lock:
            self.request_count += 1
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.exceptions.Timeout as e:
                logger.error(f"⏱️  {method} {path} timed out: {e}")
                raise TransportError(None, f"Request to {path} timed out") from e
            except requests.exceptions.RequestException as e:
                logger.error(f"❌ Cannot reach camera at {self.device_url}: {e}")
                raise TransportError(None, str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"❌ {method} {path} failed: HTTP {response.status_code}")
            raise TransportError(response.status_code, response.text or response.reason or '')

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"❌ {method} {path} returned a non-JSON body")
            raise TransportError(response.status_code, "Invalid JSON in response") from e

    def close(self):
        self.session.close()
