"""Tests for rpcli.codec -- canonical JSON rendering and parsing of messages.

Covers:
- Fields in schema order, zero values emitted by default
- Enums by name, 64-bit integers as strings, bytes as base64
- Non-finite floats
- Compact wire options (no indent, unpopulated fields omitted)
- Decoding JSON names, enum names and numbers, string integers, base64
- Decoding errors raise SerializationError
"""

from __future__ import annotations

import json
import math

import pytest

from rpcli.codec import (
    DEFAULT_MARSHAL_OPTIONS,
    WIRE_MARSHAL_OPTIONS,
    MarshalOptions,
    dict_to_message,
    json_name,
    marshal_json,
    message_to_dict,
)
from rpcli.exceptions import SerializationError
from rpcli.models import FieldKind, FieldSchema, MessageSchema
from rpcli.schema.registry import SchemaRegistry
from rpcli.schema.types import build_message_model


def _send_request(registry: SchemaRegistry, **values):
    schema = registry.find_message("pkg.SendCoinsRequest")
    return schema, build_message_model(schema, registry).model_validate(values)


# ---------------------------------------------------------------------------
# json_name
# ---------------------------------------------------------------------------


class TestJsonName:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("denom", "denom"),
            ("from_address", "fromAddress"),
            ("denom_metadata_by_string", "denomMetadataByString"),
        ],
    )
    def test_conversion(self, name: str, expected: str) -> None:
        assert json_name(name) == expected


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


class TestMarshalJson:
    def test_zero_values_in_schema_order(self, registry: SchemaRegistry) -> None:
        schema, msg = _send_request(registry)
        data = json.loads(marshal_json(msg, schema, registry))
        assert list(data) == [
            "from_address",
            "to_address",
            "amount",
            "fee",
            "urgent",
            "priority",
            "memo",
            "labels",
        ]
        assert data == {
            "from_address": "",
            "to_address": "",
            "amount": [],
            "fee": "0",
            "urgent": False,
            "priority": "ACCOUNT_STATUS_UNSPECIFIED",
            "memo": "",
            "labels": [],
        }

    def test_populated_values(self, registry: SchemaRegistry) -> None:
        schema, msg = _send_request(
            registry,
            from_address="alice",
            amount=[{"denom": "uatom", "amount": "5"}],
            fee=18446744073709551615,
            urgent=True,
            priority=2,
            memo=b"hello",
        )
        data = json.loads(marshal_json(msg, schema, registry))
        assert data["amount"] == [{"denom": "uatom", "amount": "5"}]
        assert data["fee"] == "18446744073709551615"
        assert data["priority"] == "ACCOUNT_STATUS_FROZEN"
        assert data["memo"] == "aGVsbG8="

    def test_indent_and_no_trailing_newline(self, registry: SchemaRegistry) -> None:
        schema = registry.find_message("pkg.Coin")
        text = marshal_json({"denom": "uatom", "amount": "1"}, schema, registry)
        assert text == '{\n  "denom": "uatom",\n  "amount": "1"\n}'

    def test_undeclared_enum_number_stays_numeric(self, registry: SchemaRegistry) -> None:
        schema = registry.find_message("pkg.BalanceResponse")
        data = message_to_dict({"status": 7}, schema, registry)
        assert data["status"] == 7

    def test_enum_numbers_option(self, registry: SchemaRegistry) -> None:
        schema, msg = _send_request(registry, priority=1)
        data = message_to_dict(msg, schema, registry, MarshalOptions(use_enum_numbers=True))
        assert data["priority"] == 1

    def test_json_names_option(self, registry: SchemaRegistry) -> None:
        schema, msg = _send_request(registry, from_address="alice")
        data = message_to_dict(msg, schema, registry, MarshalOptions(use_proto_names=False))
        assert data["fromAddress"] == "alice"
        assert "from_address" not in data

    def test_wire_options(self, registry: SchemaRegistry) -> None:
        schema, msg = _send_request(registry, from_address="alice", urgent=True)
        text = marshal_json(msg, schema, registry, WIRE_MARSHAL_OPTIONS)
        assert text == '{"from_address":"alice","urgent":true}'

    def test_nested_message_always_emitted_when_set(self, registry: SchemaRegistry) -> None:
        schema = registry.find_message("pkg.BalanceResponse")
        data = message_to_dict({"balance": {}}, schema, registry, WIRE_MARSHAL_OPTIONS)
        assert data == {"balance": {}}

    def test_unset_nested_message_is_null(self, registry: SchemaRegistry) -> None:
        schema = registry.find_message("pkg.BalanceResponse")
        assert message_to_dict({}, schema, registry, DEFAULT_MARSHAL_OPTIONS)["balance"] is None

    @pytest.mark.parametrize(
        "value, expected",
        [(math.nan, "NaN"), (math.inf, "Infinity"), (-math.inf, "-Infinity"), (1.5, 1.5)],
    )
    def test_floats(self, value: float, expected: object) -> None:
        registry = SchemaRegistry()
        schema = MessageSchema(name="pkg.Price", fields=[FieldSchema(name="value", kind=FieldKind.DOUBLE)])
        assert message_to_dict({"value": value}, schema, registry) == {"value": expected}

    def test_bad_value_raises(self, registry: SchemaRegistry) -> None:
        schema = registry.find_message("pkg.BalanceResponse")
        with pytest.raises(SerializationError, match="pkg.BalanceResponse.height"):
            message_to_dict({"height": "tall"}, schema, registry)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestDictToMessage:
    def _decode(self, registry: SchemaRegistry, data: object):
        schema = registry.find_message("pkg.SendCoinsRequest")
        return dict_to_message(data, schema, registry, build_message_model(schema, registry))

    def test_proto_and_json_names(self, registry: SchemaRegistry) -> None:
        msg = self._decode(registry, {"from_address": "alice", "toAddress": "bob"})
        assert msg.from_address == "alice"
        assert msg.to_address == "bob"

    def test_wire_forms(self, registry: SchemaRegistry) -> None:
        msg = self._decode(
            registry,
            {
                "fee": "42",
                "priority": "account_status_active",
                "memo": "aGVsbG8=",
                "amount": [{"denom": "uatom", "amount": "5"}],
            },
        )
        assert msg.fee == 42
        assert msg.priority == 1
        assert msg.memo == b"hello"
        assert msg.amount[0].denom == "uatom"

    def test_enum_number(self, registry: SchemaRegistry) -> None:
        assert self._decode(registry, {"priority": 2}).priority == 2

    def test_null_and_unknown_keys_ignored(self, registry: SchemaRegistry) -> None:
        msg = self._decode(registry, {"memo": None, "surprise": 1})
        assert msg.memo == b""

    def test_unknown_enum_name(self, registry: SchemaRegistry) -> None:
        with pytest.raises(SerializationError, match="unknown pkg.AccountStatus value"):
            self._decode(registry, {"priority": "SLEEPY"})

    def test_bool_is_not_an_enum(self, registry: SchemaRegistry) -> None:
        with pytest.raises(SerializationError):
            self._decode(registry, {"priority": True})

    def test_invalid_base64(self, registry: SchemaRegistry) -> None:
        with pytest.raises(SerializationError, match="pkg.SendCoinsRequest.memo"):
            self._decode(registry, {"memo": "!!"})

    def test_repeated_requires_list(self, registry: SchemaRegistry) -> None:
        with pytest.raises(SerializationError, match="expected a list"):
            self._decode(registry, {"labels": "a"})

    def test_not_an_object(self, registry: SchemaRegistry) -> None:
        with pytest.raises(SerializationError, match="expected an object"):
            self._decode(registry, ["alice"])

    def test_validation_error(self, registry: SchemaRegistry) -> None:
        with pytest.raises(SerializationError, match="invalid pkg.SendCoinsRequest"):
            self._decode(registry, {"urgent": "maybe"})
