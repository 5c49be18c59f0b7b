"""
Unit tests for response normalization
"""

from ingestion.transformers.normalizer import is_numbered_key_object, normalize_response


class TestNormalizeResponse:
    """Test the array / numbered-key / single-object dispatch"""

    def test_array_of_objects(self):
        rows = normalize_response([{"a": 1}, {"a": 2}])
        assert rows == [{"a": 1}, {"a": 2}]

    def test_numbered_key_object_matches_array(self):
        assert normalize_response({"1": {"a": 1}, "2": {"a": 2}}) == normalize_response([{"a": 1}, {"a": 2}])

    def test_numbered_keys_are_ordered_numerically(self):
        payload = {"10": {"n": 10}, "2": {"n": 2}, "1": {"n": 1}}
        assert [r["n"] for r in normalize_response(payload)] == [1, 2, 10]

    def test_single_object(self):
        assert normalize_response({"a": 1}) == [{"a": 1}]

    def test_none_yields_no_rows(self):
        assert normalize_response(None) == []

    def test_empty_containers_yield_no_rows(self):
        assert normalize_response({}) == []
        assert normalize_response([]) == []

    def test_mixed_keys_are_a_single_record(self):
        payload = {"1": {"a": 1}, "total": 1}
        assert normalize_response(payload) == [payload]

    def test_non_object_elements_are_skipped(self):
        assert normalize_response([{"a": 1}, "junk", 3, None]) == [{"a": 1}]

    def test_scalar_payload_yields_no_rows(self):
        assert normalize_response("OK") == []
        assert normalize_response(42) == []


def test_is_numbered_key_object():
    assert is_numbered_key_object({"1": {}, "2": {}})
    assert not is_numbered_key_object({})
    assert not is_numbered_key_object({"1": {}, "x": {}})
    assert not is_numbered_key_object({"-1": {}})
    assert not is_numbered_key_object({"²": {}})
    assert not is_numbered_key_object({"1": {}, "٣": {}})


def test_non_ascii_digit_keys_are_a_single_record():
    payload = {"²": {"Oprt": "OP1"}}
    assert normalize_response(payload) == [payload]
