import json

import pytest

from app.core.errors import RecordCorrupt
from app.schemas.logs import RawLogRecord, SourceSystem
from app.services.normalization.log_normalizer import LogNormalizer

from factories import at, make_raw

normalizer = LogNormalizer()


def test_structured_record_extracts_address_and_identity():
    rec = normalizer.normalize(
        make_raw('{"clientIP":"192.168.1.100","user_email":"a@b.com"}')
    )

    assert rec.payload_kind == "structured"
    assert rec.network_addresses == {"192.168.1.100"}
    assert rec.identity_strings == {"a@b.com"}
    assert rec.structured_fields["clientIP"] == "192.168.1.100"
    assert rec.source_system is SourceSystem.UNKNOWN
    assert rec.timestamp == at(0)


def test_first_candidate_key_wins_per_field():
    line = json.dumps(
        {
            "reqHost": "second.example",
            "host": "first.example",
            "companyCode": "ACME",
            "httpMethod": "POST",
            "reqMethod": "GET",
            "status": 403,
            "client_country_code": "DE",
        }
    )
    ctx = normalizer.normalize(make_raw(line)).context

    assert ctx.host == "first.example"
    assert ctx.company_code == "ACME"
    assert ctx.method == "POST"
    assert ctx.status_code == "403"
    assert ctx.country == "DE"


def test_null_value_falls_through_to_next_candidate():
    line = json.dumps({"host": None, "reqHost": "waf.example"})
    assert normalizer.normalize(make_raw(line)).context.host == "waf.example"


def test_forwarded_and_client_ip_fields_are_validated():
    line = json.dumps(
        {
            "cliIP": "127.0.0.1",
            "clientIp": "2001:db8::7",
            "xForwardedFor": "203.0.113.9, junk, 0.0.0.0,198.51.100.4",
        }
    )
    rec = normalizer.normalize(make_raw(line))
    assert rec.network_addresses == {"2001:db8::7", "203.0.113.9", "198.51.100.4"}


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"webaclId": "arn:aws:wafv2:acl"}, SourceSystem.AWS_WAF),
        ({"operationName": "Microsoft.Cdn/Profiles/WebApplicationFirewallLog/Write"}, SourceSystem.AZURE_WAF),
        ({"operationName": "SomethingElse"}, SourceSystem.UNKNOWN),
        ({"streamId": "1234"}, SourceSystem.AKAMAI_WAF),
        ({"Rule_name": "1008101"}, SourceSystem.DEEP_SECURITY),
        ({"type": "aws.guardduty.finding"}, SourceSystem.AWS_GUARDDUTY),
        ({"webaclId": "x", "streamId": "y"}, SourceSystem.AWS_WAF),
    ],
)
def test_structured_source_detection(payload, expected):
    assert normalizer.normalize(make_raw(json.dumps(payload))).source_system is expected


def test_text_record_deep_security_host():
    line = "Deep Security Agent alert Host: web-server-01, Reason: file changed by ops@corp.io from 10.1.2.3"
    rec = normalizer.normalize(make_raw(line))

    assert rec.payload_kind == "text"
    assert rec.structured_fields == {}
    assert rec.source_system is SourceSystem.DEEP_SECURITY
    assert rec.context.host == "web-server-01"
    assert rec.identity_strings == {"ops@corp.io"}
    assert rec.network_addresses == {"10.1.2.3"}


@pytest.mark.parametrize(
    "line, expected",
    [
        ("GuardDuty finding UnauthorizedAccess", SourceSystem.AWS_GUARDDUTY),
        ("Akamai edge deny", SourceSystem.AKAMAI_WAF),
        ("plain syslog line", SourceSystem.UNKNOWN),
    ],
)
def test_text_source_detection(line, expected):
    assert normalizer.normalize(make_raw(line)).source_system is expected


def test_stream_label_is_last_resort_source_hint():
    rec = normalizer.normalize(make_raw("plain line", source="azure_waf"))
    assert rec.source_system is SourceSystem.AZURE_WAF

    rec = normalizer.normalize(make_raw("plain line", source="nginx"))
    assert rec.source_system is SourceSystem.UNKNOWN


def test_json_array_is_treated_as_text():
    rec = normalizer.normalize(make_raw('["10.0.0.5", "x@y.com"]'))
    assert rec.payload_kind == "text"
    assert rec.network_addresses == {"10.0.0.5"}
    assert rec.identity_strings == {"x@y.com"}


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_non_standard_json_constants_are_treated_as_text(constant):
    rec = normalizer.normalize(
        make_raw('{"score": %s, "clientIP": "10.0.0.1"}' % constant)
    )

    assert rec.payload_kind == "text"
    assert rec.structured_fields == {}
    assert rec.network_addresses == {"10.0.0.1"}


def test_empty_extraction_is_not_an_error():
    rec = normalizer.normalize(make_raw("nothing to see here"))
    assert rec.network_addresses == frozenset()
    assert rec.identity_strings == frozenset()


def test_undecodable_bytes_raise_record_corrupt():
    with pytest.raises(RecordCorrupt):
        normalizer.normalize(make_raw(b"\xff\xfe broken"))


def test_missing_timestamp_raises_record_corrupt():
    with pytest.raises(RecordCorrupt):
        normalizer.normalize(RawLogRecord(line="x@y.com"))


def test_batch_skips_corrupt_records_and_keeps_going():
    batch = [
        make_raw(b"\xff bad"),
        make_raw("ok a@b.com", minutes=1),
        make_raw(b"bytes ok c@d.com 10.0.0.9", minutes=2),
    ]
    out = normalizer.normalize_batch(batch)

    assert [r.timestamp for r in out] == [at(1), at(2)]
    assert out[1].network_addresses == {"10.0.0.9"}
