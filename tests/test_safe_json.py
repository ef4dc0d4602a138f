import pytest

from swiftclaim.utils.safe_json import extract_json_object


class TestExtractJsonObject:

    def test_direct(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("fence", ["```json", "```", "~~~json"])
    def test_fenced(self, fence):
        closing = "~~~" if fence.startswith("~") else "```"
        raw = f"Result:\n{fence}\n{{\"a\": {{\"b\": 2}}}}\n{closing}\nDone"
        assert extract_json_object(raw) == {"a": {"b": 2}}

    def test_first_balanced_object(self):
        raw = 'Verdict follows {"summary": "uses } inside a string", "n": 3} and {"second": true}'
        assert extract_json_object(raw) == {"summary": "uses } inside a string", "n": 3}

    @pytest.mark.parametrize("raw", [None, "", "no json here", "[1, 2, 3]", "{broken", 12])
    def test_nothing_usable(self, raw):
        assert extract_json_object(raw) is None
