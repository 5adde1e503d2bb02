#!/usr/bin/env python3
"""
Operator-facing collaborators: dialogs, the loading indicator and translations.
Each state machine receives these as constructor arguments.
"""

import threading
import logging
import itertools

logger = logging.getLogger(__name__)

TRANSLATIONS = {
    'en_US': {
        'networkError': 'Network error, please try again later.',
        'wlan.join': 'Join',
        'wlan.connectFailTips': 'Failed to connect to the network.',
        'wlan.passwordError': 'Incorrect password, please enter it again.',
        'mqtt.fileEmpty': 'The selected file is empty.',
        'mqtt.fileTooLarge': 'The selected file is larger than 512 MB.',
        'mqtt.fileBadExtension': 'Unsupported file type. Allowed: {allowed}',
        'mqtt.uploadFailTips': 'Failed to upload the file.',
        'mqtt.deleteFileTips': 'Delete the uploaded file {name}?',
        'mqtt.deleteFailTips': 'Failed to delete the file on the device.',
        'mqtt.hostRequired': 'Host is required.',
        'mqtt.portRange': 'Port must be between 1 and 65535.',
        'mqtt.topicRequired': 'Topic is required.',
        'mqtt.qosRange': 'QoS must be 0, 1 or 2.',
        'cell.saveTip': 'The device will reconnect to the cellular network.',
        'sleepModeTips': 'The device will enter sleep mode. Continue?',
    },
    'zh_CN': {
        'networkError': '网络错误，请稍后重试。',
        'wlan.join': '加入',
        'wlan.connectFailTips': '连接失败。',
        'wlan.passwordError': '密码错误，请重新输入。',
        'mqtt.fileEmpty': '所选文件为空。',
        'mqtt.fileTooLarge': '所选文件超过512 MB。',
        'mqtt.fileBadExtension': '不支持的文件类型，允许：{allowed}',
        'mqtt.uploadFailTips': '文件上传失败。',
        'mqtt.deleteFileTips': '确认删除已上传的文件 {name}？',
        'mqtt.deleteFailTips': '设备上的文件删除失败。',
        'mqtt.hostRequired': 'Host不能为空。',
        'mqtt.portRange': '端口范围为1-65535。',
        'mqtt.topicRequired': 'Topic不能为空。',
        'mqtt.qosRange': 'QoS只能为0、1或2。',
        'cell.saveTip': '设备将重新连接蜂窝网络。',
        'sleepModeTips': '设备将进入休眠模式，是否继续？',
    },
}

current_language = 'en_US'


def set_language(language):
    global current_language
    if language not in TRANSLATIONS:
        logger.warning(f"Unknown language {language}, keeping {current_language}")
        return
    current_language = language


def translate(key, **kwargs):
    """Look up a message, falling back to English and then to the key itself"""
    text = TRANSLATIONS.get(current_language, {}).get(key)
    if text is None:
        text = TRANSLATIONS['en_US'].get(key, key)
    if kwargs:
        text = text.format(**kwargs)
    return text


class DialogService:
    """Interface for the operator dialog"""

    def show_tips_dialog(self, message, show_cancel=False, on_confirm=None):
        raise NotImplementedError

    def show_form_dialog(self, context, on_submit):
        raise NotImplementedError


class LoadingIndicator:
    """Counts nested show/hide calls"""

    def __init__(self):
        self.depth = 0
        self.lock = threading.Lock()

    @property
    def visible(self):
        return self.depth > 0

    def show(self):
        with self.lock:
            self.depth += 1

    def hide(self):
        with self.lock:
            self.depth = max(0, self.depth - 1)


class PendingDialogService(DialogService):
    """
    Holds the single dialog currently shown to the operator.
    The console polls it and answers through confirm/submit/dismiss.
    Opening a new dialog replaces the one on screen.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.current = None
        self.ids = itertools.count(1)

    def show_tips_dialog(self, message, show_cancel=False, on_confirm=None):
        with self.lock:
            self.current = {
                'id': next(self.ids),
                'type': 'tips',
                'message': message,
                'show_cancel': show_cancel,
                'callback': on_confirm,
            }
        logger.info(f"💬 Tips dialog: {message}")

    def show_form_dialog(self, context, on_submit):
        with self.lock:
            self.current = {
                'id': next(self.ids),
                'type': 'form',
                'title': context.get('ssid', ''),
                'show_error': bool(context.get('show_error')),
                'ok_text': translate('wlan.join'),
                'callback': on_submit,
            }
        logger.info(f"🔑 Password dialog for {context.get('ssid', '')}")

    def describe(self):
        """Public view of the open dialog, without its callback"""
        with self.lock:
            if self.current is None:
                return None
            return {k: v for k, v in self.current.items() if k != 'callback'}

    def _take(self, dialog_id, dialog_type):
        with self.lock:
            dialog = self.current
            if dialog is None or dialog['id'] != dialog_id or dialog['type'] != dialog_type:
                return None
            self.current = None
            return dialog

    def confirm(self, dialog_id):
        """Press OK on a tips dialog; returns False if it is no longer open"""
        dialog = self._take(dialog_id, 'tips')
        if dialog is None:
            return False
        if dialog['callback']:
            dialog['callback']()
        return True

    def submit(self, dialog_id, form):
        """Submit the password form"""
        dialog = self._take(dialog_id, 'form')
        if dialog is None:
            return False
        dialog['callback'](form)
        return True

    def dismiss(self, dialog_id):
        """Close without confirming; returns the dismissed dialog type"""
        with self.lock:
            dialog = self.current
            if dialog is None or dialog['id'] != dialog_id:
                return None
            self.current = None
            return dialog['type']
