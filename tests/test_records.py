"""Unit tests for the record data model and response envelopes."""

import pytest
from pydantic import ValidationError

from dyndns_update.records import (
    AddressData,
    ContentData,
    ListResponse,
    Message,
    MXData,
    PatchResponse,
    Record,
    StructuredData,
    UnhandledData,
)


def record_json(record_id="372e67954025e0ba6aaa6d586b9e0b59", record_type="A", **overrides):
    data = {
        "id": record_id,
        "type": record_type,
        "name": "home.example.com",
        "content": "198.51.100.4",
        "proxied": False,
        "ttl": 3600,
        "comment": "managed by dyndns",
        "tags": ["owner:dns-team"],
        "zone_id": "023e105f4ecef8ad9ca31a8372d0c353",
        "zone_name": "example.com",
        "proxiable": True,
        "locked": False,
        "created_on": "2014-01-01T05:20:00.12345Z",
        "modified_on": "2014-01-01T05:20:00.12345Z",
    }
    data.update(overrides)
    return data


# =============================================================================
# TTL Validation
# =============================================================================


@pytest.mark.parametrize("ttl", [1, 60, 3600, 86400])
def test_ttl_accepts_valid_values(ttl: int) -> None:
    assert Record.model_validate(record_json(ttl=ttl)).ttl == ttl


@pytest.mark.parametrize("ttl", [0, 2, 59, 86401, -1])
def test_ttl_rejects_out_of_range(ttl: int) -> None:
    with pytest.raises(ValidationError, match="Invalid TTL"):
        Record.model_validate(record_json(ttl=ttl))


@pytest.mark.parametrize("ttl", ["3600", True, 3600.0])
def test_ttl_rejects_non_integers(ttl) -> None:
    with pytest.raises(ValidationError):
        Record.model_validate(record_json(ttl=ttl))


# =============================================================================
# Record Parsing
# =============================================================================


class TestRecordValidation:
    """Tests for record validation and variant dispatch."""

    def test_a_record_is_ip_bearing(self) -> None:
        record = Record.model_validate(record_json())

        assert record.type == "A"
        assert record.is_ip_record
        assert record.data == AddressData(content="198.51.100.4", proxied=False)
        assert record.content == "198.51.100.4"
        assert record.id == "372e67954025e0ba6aaa6d586b9e0b59"
        assert record.tags == ("owner:dns-team",)
        assert record.ttl == 3600

    def test_aaaa_record_is_ip_bearing(self) -> None:
        record = Record.model_validate(record_json(record_type="AAAA", content="2001:db8::1"))

        assert record.is_ip_record
        assert record.content == "2001:db8::1"

    def test_cname_record_is_not_ip_bearing(self) -> None:
        record = Record.model_validate(record_json(record_type="CNAME", content="target.example.com"))

        assert not record.is_ip_record
        assert isinstance(record.data, ContentData)

    def test_mx_record_carries_priority(self) -> None:
        record = Record.model_validate(
            record_json(record_type="MX", content="mail.example.com", priority=10)
        )

        assert record.data == MXData(content="mail.example.com", priority=10)

    def test_mx_record_without_priority_fails(self) -> None:
        raw = record_json(record_type="MX", content="mail.example.com")

        with pytest.raises(ValidationError):
            Record.model_validate(raw)

    def test_caa_record_carries_data_object(self) -> None:
        raw = record_json(
            record_type="CAA",
            content='0 issue "letsencrypt.org"',
            data={"flags": 0, "tag": "issue", "value": "letsencrypt.org"},
        )

        record = Record.model_validate(raw)

        assert isinstance(record.data, StructuredData)
        assert record.data.data == {"flags": 0, "tag": "issue", "value": "letsencrypt.org"}

    def test_caa_record_without_data_fails(self) -> None:
        with pytest.raises(ValidationError):
            Record.model_validate(record_json(record_type="CAA", content="0 issue x"))

    def test_srv_record_data_is_optional(self) -> None:
        record = Record.model_validate(record_json(record_type="SRV", content="10 5 443 t.example.com"))

        assert record.data == StructuredData(content="10 5 443 t.example.com", data=None)

    def test_unknown_type_is_unhandled_variant(self) -> None:
        raw = record_json(record_type="OPENPGPKEY", content="mQINBF...")

        record = Record.model_validate(raw)

        assert isinstance(record.data, UnhandledData)
        assert record.data.raw["type"] == "OPENPGPKEY"
        assert not record.is_ip_record

    def test_missing_type_fails(self) -> None:
        raw = record_json()
        del raw["type"]

        with pytest.raises(ValidationError):
            Record.model_validate(raw)

    def test_a_record_without_content_fails(self) -> None:
        raw = record_json()
        del raw["content"]

        with pytest.raises(ValidationError):
            Record.model_validate(raw)

    def test_overlong_name_fails(self) -> None:
        with pytest.raises(ValidationError):
            Record.model_validate(record_json(name="a" * 256))

    def test_overlong_id_fails(self) -> None:
        with pytest.raises(ValidationError):
            Record.model_validate(record_json(record_id="x" * 33))

    def test_built_payload_is_kept_as_is(self) -> None:
        record = Record(type="A", name="a.example.com", data=AddressData(content="192.0.2.1"))

        assert record.data == AddressData(content="192.0.2.1")
        assert record.is_ip_record

    def test_record_is_immutable(self) -> None:
        record = Record.model_validate(record_json())

        with pytest.raises(ValidationError):
            record.name = "other.example.com"

    def test_optional_fields_may_be_absent(self) -> None:
        record = Record.model_validate({"type": "A", "name": "a.example.com", "content": "192.0.2.1"})

        assert record.id is None
        assert record.ttl is None
        assert record.tags is None
        assert record.comment is None


# =============================================================================
# Envelopes
# =============================================================================


class TestListResponse:
    """Tests for ListResponse parsing."""

    def test_parses_records_and_result_info(self) -> None:
        raw = {
            "result": [record_json("r1"), record_json("r2", record_type="TXT", content="v=spf1")],
            "errors": [],
            "messages": [{"code": 1000, "message": "ok"}],
            "success": True,
            "result_info": {"count": 2, "page": 1, "per_page": 20, "total_count": 2},
        }

        response = ListResponse.model_validate(raw)

        assert [r.id for r in response.result] == ["r1", "r2"]
        assert response.messages == [Message(code=1000, message="ok")]
        assert response.result_info is not None
        assert response.result_info.total_count == 2

    def test_unknown_record_type_does_not_fail_list(self) -> None:
        raw = {
            "result": [record_json("r1"), record_json("r2", record_type="BRANDNEW")],
            "errors": [],
            "messages": [],
            "success": True,
        }

        response = ListResponse.model_validate(raw)

        assert len(response.result) == 2
        assert isinstance(response.result[1].data, UnhandledData)

    def test_missing_success_fails(self) -> None:
        with pytest.raises(ValidationError):
            ListResponse.model_validate({"result": [], "errors": [], "messages": []})

    def test_message_code_below_minimum_fails(self) -> None:
        raw = {
            "result": [],
            "errors": [{"code": 999, "message": "nope"}],
            "messages": [],
            "success": False,
        }

        with pytest.raises(ValidationError):
            ListResponse.model_validate(raw)


class TestPatchResponse:
    """Tests for PatchResponse parsing."""

    def test_parses_successful_patch(self) -> None:
        raw = {
            "result": record_json("r1", content="203.0.113.9"),
            "errors": [],
            "messages": [],
            "success": True,
        }

        response = PatchResponse.model_validate(raw)

        assert response.success is True
        assert response.result is not None
        assert response.result.content == "203.0.113.9"

    def test_failed_patch_may_have_null_result(self) -> None:
        raw = {
            "result": None,
            "errors": [{"code": 9000, "message": "DNS name is invalid"}],
            "messages": [],
            "success": False,
        }

        response = PatchResponse.model_validate(raw)

        assert response.success is False
        assert response.result is None
        assert str(response.errors[0]) == "9000: DNS name is invalid"
