#!/usr/bin/env python3
"""
Console Configuration
Copy this file to 'console_config.py' and update with your camera details
"""

CONSOLE_CONFIG = {
    # Address of the camera's HTTP control API
    # Examples:
    #   "http://192.168.1.1"    # Camera's own access point
    #   "http://192.168.0.42"   # Camera joined to your WLAN
    "device_url": "http://192.168.1.1",

    # Path prefix of the control API on the camera
    "api_prefix": "/api/v1",

    # Seconds to wait for a normal request, and for a certificate upload
    "request_timeout": 5,
    "upload_timeout": 60,

    # Seconds between MQTT connection status polls
    "monitor_interval": 2.0,

    # Where the local console listens
    "console_host": "127.0.0.1",
    "console_port": 5000,

    # Interface language: "en_US" or "zh_CN"
    "language": "en_US",
}

# How to use this configuration:
# 1. Copy this file to 'console_config.py'
# 2. Set device_url to your camera's address
# 3. Run: python config_console.py
#    or pass the camera address directly: python config_console.py http://192.168.1.1

# Notes:
# - The camera handles one request at a time; the console never sends two at once
# - Keep console_host on 127.0.0.1 unless you trust your network
