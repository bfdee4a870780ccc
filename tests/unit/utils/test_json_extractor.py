"""
Tests for extracting JSON from LLM answers.
"""

from app.utils import extract_json_from_text, extract_json_safely


class TestExtractJson:
    def test_think_block_and_code_block(self):
        text = """<think>
The user wants a follow-up. {"not": "this"}
</think>

```json
{"subject": "Checking in", "body": "Hi"}
```"""
        assert extract_json_from_text(text) == {"subject": "Checking in", "body": "Hi"}

    def test_json_surrounded_by_prose(self):
        text = 'Sure, here it is: {"subject": "Hello", "body": "World"} Let me know!'
        assert extract_json_from_text(text) == {"subject": "Hello", "body": "World"}

    def test_required_keys_skip_incomplete_objects(self):
        text = '```json\n{"subject": "Only"}\n```\n{"subject": "Full", "body": "Yes"}'
        result = extract_json_from_text(text, required_keys=["subject", "body"])
        assert result == {"subject": "Full", "body": "Yes"}

    def test_default_when_nothing_parses(self):
        assert extract_json_from_text("no json here", default={}) == {}
        assert extract_json_from_text("", default=None) is None

    def test_safely_enforces_type(self):
        assert extract_json_safely("[1, 2, 3]", dict, default={}) == {}
        assert extract_json_safely("[1, 2, 3]", list) == [1, 2, 3]
