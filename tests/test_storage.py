"""对象存储适配层测试（botocore Stubber，不访问网络）"""

import boto3
import pytest
from botocore.stub import Stubber

from assetops.errors import SetupError, StoreIOError
from assetops.settings import StorageSettings
from assetops.storage import R2BlobStore, filename_of, key_from_url

BASE = "https://assets.test"


@pytest.fixture
def client():
    return boto3.client(
        "s3",
        endpoint_url="https://acct.r2.cloudflarestorage.com",
        aws_access_key_id="test",
        aws_secret_access_key="test",
        region_name="auto",
    )


@pytest.fixture
def store(client):
    return R2BlobStore(client, "bucket", BASE + "/")


class TestKeys:
    """URL 与 key 互转"""

    def test_key_from_url(self):
        assert key_from_url(f"{BASE}/styles/a/1.png", BASE) == "styles/a/1.png"
        assert key_from_url("https://cdn.other/styles/a/1.png") == "styles/a/1.png"
        assert key_from_url("/styles/a/1.png") == "styles/a/1.png"

    def test_filename_of(self):
        assert filename_of("styles/seed-generated/x-1.png") == "x-1.png"
        assert filename_of(f"{BASE}/x.png") == "x.png"

    def test_public_url(self, store):
        assert store.public_url("styles/a/1.png") == f"{BASE}/styles/a/1.png"
        assert store.public_url("/styles/a/1.png") == f"{BASE}/styles/a/1.png"


class TestR2BlobStore:
    """R2 实现测试"""

    def test_list_paginates_and_skips_placeholders(self, client, store):
        with Stubber(client) as stub:
            stub.add_response("list_objects_v2", {
                "IsTruncated": True,
                "NextContinuationToken": "t1",
                "Contents": [{"Key": "styles/a/"}, {"Key": "styles/a/1.png"}],
            })
            stub.add_response("list_objects_v2", {
                "IsTruncated": False,
                "Contents": [{"Key": "styles/a/2.png"}],
            })
            objs = store.list("styles/a/")
            stub.assert_no_pending_responses()

        assert [o.key for o in objs] == ["styles/a/1.png", "styles/a/2.png"]
        assert objs[0].url == f"{BASE}/styles/a/1.png"

    def test_list_empty_prefix(self, client, store):
        with Stubber(client) as stub:
            stub.add_response("list_objects_v2", {"IsTruncated": False, "KeyCount": 0})
            assert store.list("styles/none/") == []

    def test_copy_and_delete(self, client, store):
        with Stubber(client) as stub:
            stub.add_response("copy_object", {})
            stub.add_response("delete_object", {}, {"Bucket": "bucket", "Key": "styles/seed-generated/x.png"})

            url = store.copy("styles/seed-generated/x.png", "styles/a/x.png", delete_source=True)
            stub.assert_no_pending_responses()

        assert url == f"{BASE}/styles/a/x.png"

    def test_copy_without_delete(self, client, store):
        with Stubber(client) as stub:
            stub.add_response("copy_object", {})
            store.copy("src.png", "styles/a/src.png")
            stub.assert_no_pending_responses()

    def test_client_error_becomes_store_io(self, client, store):
        with Stubber(client) as stub:
            stub.add_client_error("copy_object", service_error_code="NoSuchKey", http_status_code=404)
            with pytest.raises(StoreIOError):
                store.copy("missing.png", "styles/a/missing.png")

        with Stubber(client) as stub:
            stub.add_client_error("list_objects_v2", service_error_code="AccessDenied", http_status_code=403)
            with pytest.raises(StoreIOError):
                store.list("styles/")


class TestFromSettings:
    """按配置构建"""

    def test_missing_credentials(self):
        settings = StorageSettings(account_id=None, access_key_id=None, secret_access_key=None, endpoint_url=None)
        with pytest.raises(SetupError):
            R2BlobStore.from_settings(settings)

    def test_builds_client(self):
        settings = StorageSettings(
            account_id="acct", access_key_id="k", secret_access_key="s",
            bucket_name="b", public_url="https://cdn.test/",
        )
        store = R2BlobStore.from_settings(settings)
        assert store.bucket == "b"
        assert store.public_url("x.png") == "https://cdn.test/x.png"
        assert settings.get_endpoint_url() == "https://acct.r2.cloudflarestorage.com"
