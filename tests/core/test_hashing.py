"""Tests for nosqldb_operator.core.hashing."""

import dataclasses
from datetime import datetime, timezone
from enum import Enum

import pytest

from nosqldb_operator.core.hashing import canonical_json, compute_digest
from nosqldb_operator.core.models import ConsulRegistration


class Color(Enum):
    RED = "red"


@dataclasses.dataclass
class Point:
    x: int
    y: int


class TestCanonicalJson:
    def test_sorted_and_compact(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_models_dump_by_alias(self):
        text = canonical_json(ConsulRegistration(enabled=True, acl_enabled=True))
        assert '"aclEnabled":true' in text

    def test_special_types(self):
        when = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert canonical_json({"c": Color.RED, "p": Point(1, 2), "t": when, "s": {2, 1}}) == (
            '{"c":"red","p":{"x":1,"y":2},"s":[1,2],"t":"2024-01-02T00:00:00+00:00"}'
        )

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            canonical_json(object())

    def test_unicode_kept(self):
        assert canonical_json("ü") == '"ü"'


class TestComputeDigest:
    def test_order_independent(self):
        assert compute_digest({"a": 1, "b": {"c": 2, "d": 3}}) == compute_digest({"b": {"d": 3, "c": 2}, "a": 1})

    def test_full_sha256(self):
        digest = compute_digest({"replicas": 3})
        assert len(digest) == 64
        int(digest, 16)

    def test_different_values_differ(self):
        assert compute_digest({"replicas": 3}) != compute_digest({"replicas": 4})

    def test_model_and_dict_agree(self):
        model = ConsulRegistration(enabled=True, host="consul")
        assert compute_digest(model) == compute_digest(model.model_dump(mode="json", by_alias=True))
