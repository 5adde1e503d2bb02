import pytest

from errors import TransportError, ValidationError
from fakes import FakeTransport, RecordingDialog
import credential_files
from credential_files import (
    CredentialFilePipeline, CredentialFile, validate_file,
    CA, CERT, KEY, MAX_FILE_SIZE,
)


def _pipeline(routes=None):
    transport = FakeTransport(routes)
    dialog = RecordingDialog()
    return CredentialFilePipeline(transport, dialog), transport, dialog


def _sized(name, size):
    def read():
        raise AssertionError("file should not be read")
    return CredentialFile(name, size, read)


@pytest.mark.parametrize("size", [0, MAX_FILE_SIZE + 1])
def test_size_limits_apply_to_every_extension(size):
    with pytest.raises(ValidationError) as exc:
        validate_file(CA, _sized("ca.pem", size))
    assert exc.value.kind in (ValidationError.EMPTY, ValidationError.TOO_LARGE)


def test_missing_file_is_empty():
    with pytest.raises(ValidationError) as exc:
        validate_file(KEY, None)
    assert exc.value.kind == ValidationError.EMPTY


def test_extension_allow_lists():
    validate_file(CA, _sized("root.CRT", 10))
    validate_file(CERT, _sized("client.cert", 10))
    validate_file(KEY, _sized("client.key", 10))
    validate_file(CA, _sized("ca.pem", MAX_FILE_SIZE))

    for role, name in ((CA, "ca.cert"), (CA, "ca.key"), (KEY, "client.crt"), (CERT, "noext")):
        with pytest.raises(ValidationError) as exc:
            validate_file(role, _sized(name, 10))
        assert exc.value.kind == ValidationError.BAD_EXTENSION


def test_one_byte_pem_accepted_for_ca():
    pipeline, transport, dialog = _pipeline({'uploadCaFile': {'result': 1000}})

    assert pipeline.select_file(CA, CredentialFile.from_bytes("ca.pem", b"x")) is True

    assert transport.calls == [('BINARY', 'uploadCaFile', {'filename': 'ca.pem', 'size': 1})]
    slot = pipeline.slot(CA)
    assert slot.file_name == "ca.pem"
    assert slot.state == credential_files.PRESENT
    assert slot.local_file is None
    assert dialog.tips == []


def test_invalid_file_shows_message_and_never_uploads():
    pipeline, transport, dialog = _pipeline({'uploadKeyFile': {'result': 1000}})

    assert pipeline.select_file(KEY, CredentialFile.from_bytes("client.key", b"")) is False

    assert transport.calls == []
    assert len(dialog.tips) == 1
    assert pipeline.slot(KEY).state == credential_files.EMPTY
    assert pipeline.slot(KEY).local_file is None


def test_failed_upload_leaves_slot_unchanged():
    pipeline, transport, dialog = _pipeline({'uploadCertFile': TransportError(500, "oops")})
    pipeline.load_names({CERT: "old.pem"})

    assert pipeline.select_file(CERT, CredentialFile.from_bytes("new.pem", b"abc")) is False

    slot = pipeline.slot(CERT)
    assert slot.file_name == "old.pem"
    assert slot.state == credential_files.PRESENT
    assert len(dialog.tips) == 1
    assert len(transport.calls) == 1


def test_clear_empty_slot_makes_no_calls():
    pipeline, transport, dialog = _pipeline()

    pipeline.clear(CA)

    assert transport.calls == []
    assert dialog.tips == []
    assert pipeline.slot(CA).file_name == ""


def test_clear_present_slot_waits_for_confirmation():
    pipeline, transport, dialog = _pipeline({'deleteCaFile': {'result': 1000}})
    pipeline.load_names({CA: "ca.pem"})

    pipeline.clear(CA)

    assert transport.calls == []
    assert pipeline.slot(CA).state == credential_files.CONFIRMING_DELETE
    message, show_cancel, _ = dialog.tips[-1]
    assert show_cancel is True
    assert "ca.pem" in message

    dialog.confirm_last()

    assert transport.calls == [('POST', 'deleteCaFile', {'filename': 'ca.pem'})]
    assert pipeline.slot(CA).file_name == ""
    assert pipeline.slot(CA).state == credential_files.EMPTY


def test_clear_always_empties_slot_even_if_delete_fails():
    pipeline, transport, dialog = _pipeline({'deleteKeyFile': TransportError(None, "down")})
    pipeline.load_names({KEY: "client.key"})

    pipeline.clear(KEY)
    dialog.confirm_last()

    assert len(transport.calls) == 1
    assert pipeline.slot(KEY).file_name == ""
    # Confirmation plus the delete failure notice
    assert len(dialog.tips) == 2


def test_cancel_clear_keeps_file():
    pipeline, transport, dialog = _pipeline()
    pipeline.load_names({CA: "ca.pem"})

    pipeline.clear(CA)
    pipeline.cancel_clear(CA)

    assert pipeline.slot(CA).state == credential_files.PRESENT
    assert pipeline.slot(CA).file_name == "ca.pem"



def test_second_clear_replaces_first_confirmation():
    pipeline, transport, dialog = _pipeline({'deleteCertFile': {'result': 1000}})
    pipeline.load_names({CA: "ca.pem", CERT: "client.crt"})

    pipeline.clear(CA)
    pipeline.clear(CERT)
    dialog.confirm_last()

    assert transport.calls == [('POST', 'deleteCertFile', {'filename': 'client.crt'})]
    assert pipeline.slot(CA).state == credential_files.PRESENT
    assert pipeline.slot(CA).file_name == "ca.pem"
    assert pipeline.slot(CERT).state == credential_files.EMPTY

def test_newer_selection_wins_over_stale_upload():
    def upload(data):
        if data == b"first":
            # Operator picks another file while the first upload is in flight
            assert pipeline.select_file(CA, CredentialFile.from_bytes("second.pem", b"second")) is True
        return {'result': 1000}

    pipeline, transport, dialog = _pipeline({'uploadCaFile': upload})

    assert pipeline.select_file(CA, CredentialFile.from_bytes("first.pem", b"first")) is False
    assert pipeline.slot(CA).file_name == "second.pem"
    assert pipeline.slot(CA).state == credential_files.PRESENT


def test_from_path_reads_whole_file(tmp_path):
    path = tmp_path / "client.key"
    path.write_bytes(b"-----BEGIN KEY-----")
    credential_file = CredentialFile.from_path(str(path))

    assert credential_file.name == "client.key"
    assert credential_file.size == 19
    assert credential_file.extension == "key"
    assert credential_file.read() == b"-----BEGIN KEY-----"


def test_unknown_slot():
    pipeline, _, _ = _pipeline()
    with pytest.raises(KeyError):
        pipeline.slot("bundle")
