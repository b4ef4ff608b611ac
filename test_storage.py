"""Tests for the boto3-backed object store using botocore stubs."""

import io

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from s3_archiver.errors import PreflightError
from s3_archiver.models import UploadStatus, UploadTarget
from s3_archiver.storage import S3ObjectStore
from s3_archiver.uploader import ThrottledUploader

TARGET = UploadTarget('archive-bucket', 'uploads/20250101_000000/a.txt.zip')


@pytest.fixture
def clients():
    session = boto3.session.Session(
        aws_access_key_id='testing',
        aws_secret_access_key='testing',
        region_name='us-east-1',
    )
    s3 = session.client('s3')
    sts = session.client('sts')
    with Stubber(s3) as s3_stub, Stubber(sts) as sts_stub:
        yield s3, sts, s3_stub, sts_stub


@pytest.fixture
def object_store(clients):
    s3, sts, _, _ = clients
    return S3ObjectStore('us-east-1', s3_client=s3, sts_client=sts)


def test_whoami_returns_arn(object_store, clients):
    _, _, _, sts_stub = clients
    sts_stub.add_response('get_caller_identity', {
        'UserId': 'AIDAEXAMPLE',
        'Account': '123456789012',
        'Arn': 'arn:aws:iam::123456789012:user/archiver',
    })

    assert object_store.whoami() == 'arn:aws:iam::123456789012:user/archiver'


def test_rejected_credentials_raise_preflight_error(object_store, clients):
    _, _, _, sts_stub = clients
    sts_stub.add_client_error('get_caller_identity', service_error_code='InvalidClientTokenId',
                              service_message='The security token included in the request is invalid.',
                              http_status_code=403)

    with pytest.raises(PreflightError, match='InvalidClientTokenId'):
        object_store.whoami()


def test_bucket_exists(object_store, clients):
    _, _, s3_stub, _ = clients
    s3_stub.add_response('head_bucket', {}, {'Bucket': 'archive-bucket'})

    assert object_store.bucket_exists('archive-bucket')


@pytest.mark.parametrize("code", ['404', '403'])
def test_missing_or_forbidden_bucket(object_store, clients, code):
    _, _, s3_stub, _ = clients
    s3_stub.add_client_error('head_bucket', service_error_code=code,
                             http_status_code=int(code))

    assert not object_store.bucket_exists('archive-bucket')


def test_list_buckets(object_store, clients):
    _, _, s3_stub, _ = clients
    s3_stub.add_response('list_buckets', {'Buckets': [{'Name': 'one'}, {'Name': 'two'}]})

    assert object_store.list_buckets() == ['one', 'two']


def test_head_object_missing_key_is_none(object_store, clients):
    _, _, s3_stub, _ = clients
    s3_stub.add_client_error('head_object', service_error_code='404', http_status_code=404)

    assert object_store.head_object('archive-bucket', 'uploads/x.zip') is None


def test_head_object_other_errors_propagate(object_store, clients):
    _, _, s3_stub, _ = clients
    s3_stub.add_client_error('head_object', service_error_code='403', http_status_code=403)

    with pytest.raises(ClientError):
        object_store.head_object('archive-bucket', 'uploads/x.zip')


def _fake_upload_fileobj(seen):
    def fake_upload_fileobj(fileobj, bucket, key, ExtraArgs=None, Callback=None, Config=None):
        seen.update(data=fileobj.read(), bucket=bucket, key=key, extra=ExtraArgs, config=Config)
    return fake_upload_fileobj


def test_put_object_stream_sets_storage_class(object_store, clients, monkeypatch):
    s3, _, s3_stub, _ = clients
    seen = {}
    monkeypatch.setattr(s3, 'upload_fileobj', _fake_upload_fileobj(seen))

    etag = object_store.put_object_stream('archive-bucket', 'uploads/a.txt.zip',
                                          io.BytesIO(b'hello'), size=5)

    assert etag is None
    assert seen['data'] == b'hello'
    assert seen['extra']['StorageClass'] == 'STANDARD_IA'
    assert seen['extra']['Metadata']['original_size'] == '5'
    assert seen['config'].use_threads is False
    s3_stub.assert_no_pending_responses()


def _archive(tmp_path):
    path = tmp_path / 'a.txt.zip'
    path.write_bytes(b'hello')
    return path


def test_write_only_credentials_upload_without_verification(object_store, clients,
                                                            monkeypatch, tmp_path):
    s3, _, s3_stub, _ = clients
    monkeypatch.setattr(s3, 'upload_fileobj', _fake_upload_fileobj({}))
    s3_stub.add_client_error('head_object', service_error_code='403', http_status_code=403)
    uploader = ThrottledUploader(object_store, verify=False, show_progress=False)

    outcome = uploader.upload(_archive(tmp_path), TARGET, rate_limit=1024 * 1024)

    assert outcome.success, outcome.error
    assert outcome.etag is None


def test_verification_reads_back_size_and_etag(object_store, clients, monkeypatch, tmp_path):
    s3, _, s3_stub, _ = clients
    monkeypatch.setattr(s3, 'upload_fileobj', _fake_upload_fileobj({}))
    s3_stub.add_response('head_object', {'ContentLength': 5, 'ETag': '"abc123"'},
                         {'Bucket': TARGET.bucket, 'Key': TARGET.key})
    uploader = ThrottledUploader(object_store, verify=True, show_progress=False)

    outcome = uploader.upload(_archive(tmp_path), TARGET, rate_limit=1024 * 1024)

    assert outcome.success, outcome.error
    assert outcome.etag == 'abc123'


def test_forbidden_verification_marks_upload_incomplete(object_store, clients,
                                                        monkeypatch, tmp_path):
    s3, _, s3_stub, _ = clients
    monkeypatch.setattr(s3, 'upload_fileobj', _fake_upload_fileobj({}))
    s3_stub.add_client_error('head_object', service_error_code='403', http_status_code=403)
    uploader = ThrottledUploader(object_store, verify=True, show_progress=False)

    outcome = uploader.upload(_archive(tmp_path), TARGET, rate_limit=1024 * 1024)

    assert outcome.status == UploadStatus.INCOMPLETE
    assert 'head_object failed' in outcome.error
