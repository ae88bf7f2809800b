"""
Tests for the object store -> remote push dispatch.
"""

import pytest

from sftp_bridge.config.models import parse_streams
from sftp_bridge.exceptions import BridgeError, ConfigurationError, TransportError
from sftp_bridge.sync.push import (
    dispatch,
    dispatch_record,
    is_delivered,
    matching_streams,
    parse_record,
    remote_destination,
)


def record(bucket, key):
    return {"s3": {"bucket": {"name": bucket}, "object": {"key": key}}}


def notification(*records):
    return {"Records": list(records)}


class TestDeliveredFlag:
    """The flag counts only when it is literally "true"."""

    def test_true(self):
        assert is_delivered({"synched": "true"}) is True

    @pytest.mark.parametrize("metadata", [None, {}, {"synched": "false"}, {"synched": "True"}, {"other": "true"}])
    def test_not_delivered(self, metadata):
        assert is_delivered(metadata) is False


class TestParseRecord:
    """Tests for reading bucket and key from a notification record."""

    def test_plain_key(self):
        assert parse_record(record("b", "dir/x.txt")) == ("b", "dir/x.txt")

    def test_url_encoded_key(self):
        assert parse_record(record("b", "dir/my+file%2B1.txt")) == ("b", "dir/my file+1.txt")

    def test_malformed_record(self):
        with pytest.raises(BridgeError, match="Malformed storage notification record"):
            parse_record({"s3": {"bucket": {"name": "b"}}})


class TestMatchingStreams:
    """Segment-prefix matching of store locations."""

    streams = parse_streams(
        {
            "sub": {"s3Location": "bucket/sub", "sftpLocation": "in/sub"},
            "sub2": {"s3Location": "bucket/sub2", "sftpLocation": "in/sub2"},
            "all": {"s3Location": "bucket", "sftpLocation": "in/all"},
            "other": {"s3Location": "other-bucket"},
            "pull-only": {"sftpLocation": "x"},
        }
    )

    def names(self, bucket, key):
        return [stream.name for stream in matching_streams(self.streams, bucket, key)]

    def test_prefix_exclusivity(self):
        assert self.names("bucket", "sub2/file.txt") == ["sub2", "all"]

    def test_partial_segment_never_matches(self):
        assert self.names("bucket", "subdir/file.txt") == ["all"]

    def test_multiple_matches_in_config_order(self):
        assert self.names("bucket", "sub/dir/x") == ["sub", "all"]

    def test_no_match(self):
        assert self.names("unknown", "x") == []

    def test_remote_destination(self):
        streams = self.streams
        assert remote_destination(streams["sub"], "bucket", "sub/dir/x") == "in/sub/dir/x"
        assert remote_destination(streams["all"], "bucket", "sub/dir/x") == "in/all/sub/dir/x"

    def test_remote_destination_without_remote_root(self):
        streams = parse_streams({"s": {"s3Location": "bucket-name"}})
        assert remote_destination(streams["s"], "bucket-name", "object-key") == "object-key"


class TestDispatchRecord:
    """Tests for delivering one changed object."""

    @pytest.mark.asyncio
    async def test_delivers_and_marks(self, store, server, session_factory):
        store.put("bucket-name", "object-key", "Hello World!", {"content-owner": "ops"})
        streams = parse_streams({"s": {"s3Location": "bucket-name", "sftpConfig": {}}})

        outcomes = await dispatch_record(record("bucket-name", "object-key"), streams, store, session_factory)

        assert server.read("object-key") == b"Hello World!"
        assert store.metadata("bucket-name", "object-key") == {"content-owner": "ops", "synched": "true"}
        assert [o.to_dict() for o in outcomes] == [
            {"stream": "s", "bucket": "bucket-name", "key": "object-key", "remote_path": "object-key"}
        ]

    @pytest.mark.asyncio
    async def test_already_delivered_is_skipped(self, store, server, session_factory):
        store.put("b", "k", "x", {"synched": "true"})
        streams = parse_streams({"s": {"s3Location": "b", "sftpConfig": {}}})

        assert await dispatch_record(record("b", "k"), streams, store, session_factory) == []

        assert server.written == []
        assert store.metadata_updates == []
        assert session_factory.sessions == []

    @pytest.mark.asyncio
    async def test_fan_out_to_every_match(self, store, server, session_factory):
        store.put("bucket", "sub/dir/x", "payload")
        streams = parse_streams(
            {
                "a": {"s3Location": "bucket/sub", "sftpLocation": "/a", "sftpConfig": {"host": "a.example"}},
                "b": {"s3Location": "bucket", "sftpLocation": "/b", "sftpConfig": {"host": "b.example"}},
            }
        )

        outcomes = await dispatch_record(record("bucket", "sub/dir/x"), streams, store, session_factory)

        assert sorted(o.remote_path for o in outcomes) == ["a/dir/x", "b/sub/dir/x"]
        assert server.read("a/dir/x") == b"payload"
        assert server.read("b/sub/dir/x") == b"payload"
        assert sorted(c.host for c in session_factory.connections) == ["a.example", "b.example"]
        assert all(session.open is False for session in session_factory.sessions)

    @pytest.mark.asyncio
    async def test_no_match_still_marks_delivered(self, store, server, session_factory):
        store.put("unrelated", "k", "x")
        streams = parse_streams({"s": {"s3Location": "bucket", "sftpConfig": {}}})

        assert await dispatch_record(record("unrelated", "k"), streams, store, session_factory) == []

        assert server.written == []
        assert store.metadata("unrelated", "k") == {"synched": "true"}

    @pytest.mark.asyncio
    async def test_failed_write_leaves_flag_unset(self, store, server, session_factory):
        store.put("bucket", "x", "payload")
        server.fail_on["bad/x"] = TransportError("SFTP write failed for bad/x")
        streams = parse_streams(
            {
                "good": {"s3Location": "bucket", "sftpLocation": "good", "sftpConfig": {}},
                "bad": {"s3Location": "bucket", "sftpLocation": "bad", "sftpConfig": {}},
            }
        )

        with pytest.raises(TransportError):
            await dispatch_record(record("bucket", "x"), streams, store, session_factory)

        # The sibling write still completed; the flag was never set.
        assert server.read("good/x") == b"payload"
        assert store.metadata("bucket", "x") == {}
        assert store.metadata_updates == []

    @pytest.mark.asyncio
    async def test_missing_connection_block(self, store, session_factory):
        store.put("bucket", "x", "payload")
        streams = parse_streams({"s": {"s3Location": "bucket"}})

        with pytest.raises(ConfigurationError, match="SFTP config not found"):
            await dispatch_record(record("bucket", "x"), streams, store, session_factory)

        assert store.metadata("bucket", "x") == {}

    @pytest.mark.asyncio
    async def test_unreadable_object(self, store, session_factory):
        with pytest.raises(TransportError):
            await dispatch_record(record("bucket", "missing"), {}, store, session_factory)


class TestDispatch:
    """Tests for whole notifications."""

    @pytest.mark.asyncio
    async def test_all_records(self, store, server, session_factory):
        store.put("bucket", "one.txt", "1")
        store.put("bucket", "two.txt", "2")
        streams = parse_streams({"s": {"s3Location": "bucket", "sftpLocation": "in", "sftpConfig": {}}})

        outcomes = await dispatch(
            notification(record("bucket", "one.txt"), record("bucket", "two.txt")), streams, store, session_factory
        )

        assert sorted(o.remote_path for o in outcomes) == ["in/one.txt", "in/two.txt"]

    @pytest.mark.asyncio
    async def test_idempotent_replay(self, store, server, session_factory):
        store.put("bucket", "x", "payload")
        streams = parse_streams({"s": {"s3Location": "bucket", "sftpLocation": "in", "sftpConfig": {}}})
        event = notification(record("bucket", "x"))

        first = await dispatch(event, streams, store, session_factory)
        second = await dispatch(event, streams, store, session_factory)

        assert len(first) == 1
        assert second == []
        assert server.written == ["in/x"]
        assert store.metadata("bucket", "x") == {"synched": "true"}

    @pytest.mark.asyncio
    async def test_one_failed_record_fails_dispatch(self, store, server, session_factory):
        store.put("bucket", "good", "g")
        streams = parse_streams({"s": {"s3Location": "bucket", "sftpConfig": {}}})

        with pytest.raises(TransportError):
            await dispatch(
                notification(record("bucket", "good"), record("bucket", "missing")), streams, store, session_factory
            )

        # Sibling records run to completion before the failure surfaces.
        assert server.read("good") == b"g"

    @pytest.mark.asyncio
    async def test_empty_notification(self, store, session_factory):
        assert await dispatch({"Records": []}, {}, store, session_factory) == []
