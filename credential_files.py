#!/usr/bin/env python3
"""
CA / client certificate / private key files for MQTT over TLS.

Each slot goes Empty -> Validating -> Uploading -> Present, and back to
Empty through a confirmed delete. A slot's file_name is only ever set after
the camera accepted the upload.
"""

import os
import itertools
import logging

from device_api import URL
from errors import TransportError, ValidationError
from ui_services import translate

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 512 * 1024 * 1024

CA = 'ca'
CERT = 'cert'
KEY = 'key'
SLOTS = (CA, CERT, KEY)

ALLOWED_EXTENSIONS = {
    CA: ('pem', 'crt', 'cer'),
    CERT: ('pem', 'crt', 'cer', 'cert'),
    KEY: ('key', 'pem'),
}

UPLOAD_PATHS = {
    CA: URL['uploadCaFile'],
    CERT: URL['uploadCertFile'],
    KEY: URL['uploadKeyFile'],
}

DELETE_PATHS = {
    CA: URL['deleteCaFile'],
    CERT: URL['deleteCertFile'],
    KEY: URL['deleteKeyFile'],
}

# Slot states
EMPTY = 'Empty'
VALIDATING = 'Validating'
UPLOADING = 'Uploading'
PRESENT = 'Present'
CONFIRMING_DELETE = 'ConfirmingDelete'


class CredentialFile:
    """A file picked by the operator, read lazily"""

    def __init__(self, name, size, reader):
        self.name = name
        self.size = size
        self._reader = reader

    @classmethod
    def from_path(cls, path):
        def read():
            with open(path, 'rb') as f:
                return f.read()
        return cls(os.path.basename(path), os.path.getsize(path), read)

    @classmethod
    def from_bytes(cls, name, data):
        return cls(name, len(data), lambda: data)

    @property
    def extension(self):
        _, ext = os.path.splitext(self.name)
        return ext[1:].lower()

    def read(self):
        return self._reader()


class CredentialSlot:
    def __init__(self, role, file_name=""):
        self.role = role
        self.file_name = file_name or ""
        self.local_file = None
        self.state = PRESENT if self.file_name else EMPTY

    def to_dict(self):
        return {
            'role': self.role,
            'file_name': self.file_name,
            'state': self.state,
        }


def validate_file(role, credential_file):
    """Raise ValidationError if the file cannot go into this slot"""
    if credential_file is None or credential_file.size <= 0:
        raise ValidationError(ValidationError.EMPTY, translate('mqtt.fileEmpty'), field=role)
    if credential_file.size > MAX_FILE_SIZE:
        raise ValidationError(ValidationError.TOO_LARGE, translate('mqtt.fileTooLarge'), field=role)
    allowed = ALLOWED_EXTENSIONS[role]
    if credential_file.extension not in allowed:
        raise ValidationError(
            ValidationError.BAD_EXTENSION,
            translate('mqtt.fileBadExtension', allowed=', '.join(allowed)),
            field=role
        )


class CredentialFilePipeline:
    def __init__(self, transport, dialog, loading=None, slots=None):
        self.transport = transport
        self.dialog = dialog
        self.loading = loading
        self.slots = slots or {role: CredentialSlot(role) for role in SLOTS}

        # A newer selection makes the older upload's answer stale
        self._tokens = itertools.count(1)
        self.upload_tokens = {role: 0 for role in SLOTS}

    def slot(self, role):
        if role not in self.slots:
            raise KeyError(f"Unknown credential slot: {role}")
        return self.slots[role]

    def load_names(self, names):
        """Adopt the file names the camera reports, e.g. after getDataReport"""
        for role, name in names.items():
            slot = self.slot(role)
            slot.file_name = name or ""
            slot.state = PRESENT if slot.file_name else EMPTY

    def select_file(self, role, credential_file):
        """Validate a picked file and upload it; returns True when stored on the camera"""
        slot = self.slot(role)
        slot.state = VALIDATING
        try:
            validate_file(role, credential_file)
        except ValidationError as e:
            logger.warning(f"⚠️  Rejected {role} file: {e.kind}")
            slot.state = self._settled_state(slot)
            slot.local_file = None
            self.dialog.show_tips_dialog(e.message)
            return False

        token = next(self._tokens)
        self.upload_tokens[role] = token
        slot.local_file = credential_file
        try:
            return self.upload(role, credential_file, token)
        finally:
            # The file picker is cleared whatever happened
            if self.upload_tokens[role] == token:
                slot.local_file = None

    def upload(self, role, credential_file, token=None):
        slot = self.slot(role)
        if token is None:
            token = next(self._tokens)
            self.upload_tokens[role] = token
        data = credential_file.read()
        slot.state = UPLOADING
        logger.info(f"📤 Uploading {role} file {credential_file.name} ({len(data)} bytes)")
        if self.loading:
            self.loading.show()
        try:
            self.transport.post_binary(UPLOAD_PATHS[role], credential_file.name, data)
        except TransportError as e:
            if self.upload_tokens[role] != token:
                logger.info(f"Ignoring stale {role} upload failure: {e}")
                return False
            logger.error(f"❌ Upload of {role} file failed: {e}")
            slot.state = self._settled_state(slot)
            self.dialog.show_tips_dialog(translate('mqtt.uploadFailTips'))
            return False
        finally:
            if self.loading:
                self.loading.hide()

        if self.upload_tokens[role] != token:
            logger.info(f"Ignoring stale {role} upload of {credential_file.name}")
            return False

        slot.file_name = credential_file.name
        slot.state = PRESENT
        logger.info(f"✅ {role} file stored on camera as {slot.file_name}")
        return True

    def clear(self, role):
        """Remove the slot's file; asks for confirmation when the camera holds one"""
        slot = self.slot(role)
        # Invalidate any upload still in flight for this slot
        self.upload_tokens[role] = next(self._tokens)

        if not slot.file_name:
            slot.local_file = None
            slot.state = EMPTY
            return

        # The new prompt replaces any earlier one still open
        for other in self.slots:
            if other != role:
                self.cancel_clear(other)
        slot.state = CONFIRMING_DELETE
        self.dialog.show_tips_dialog(
            translate('mqtt.deleteFileTips', name=slot.file_name),
            True,
            lambda: self._delete(role)
        )

    def cancel_clear(self, role):
        slot = self.slot(role)
        if slot.state == CONFIRMING_DELETE:
            slot.state = self._settled_state(slot)

    def _delete(self, role):
        slot = self.slot(role)
        try:
            self.transport.post_data(DELETE_PATHS[role], {'filename': slot.file_name})
            logger.info(f"🗑️  Deleted {role} file {slot.file_name}")
        except TransportError as e:
            logger.error(f"❌ Delete of {role} file {slot.file_name} failed: {e}")
            self.dialog.show_tips_dialog(translate('mqtt.deleteFailTips'))
        finally:
            slot.file_name = ""
            slot.local_file = None
            slot.state = EMPTY

    def _settled_state(self, slot):
        return PRESENT if slot.file_name else EMPTY

    def to_dict(self):
        return {role: slot.to_dict() for role, slot in self.slots.items()}
