"""
Response cleaning utilities for LLM outputs.
Extracts structured JSON from free text returned by the generation service,
tolerating reasoning blocks, Markdown fences and trailing commas.
"""
import json
import re
from typing import Any, Dict, List, Optional, Tuple


class ResponseCleaner:
    """
    Cleans raw generation output before it is parsed into a schema.
    """

    THINK_BLOCK = re.compile(r'<think>.*?</think>', flags=re.DOTALL | re.IGNORECASE)
    CODE_FENCE = re.compile(r'```(?:json)?\s*(.*?)```', flags=re.DOTALL | re.IGNORECASE)

    @classmethod
    def strip_reasoning(cls, text: str) -> str:
        """Remove <think>...</think> blocks some models emit before the answer."""
        if not text:
            return ""
        cleaned = cls.THINK_BLOCK.sub('', text)
        # An unterminated block leaves everything up to the closing tag
        if '</think>' in cleaned.lower():
            cleaned = re.split(r'</think>', cleaned, flags=re.IGNORECASE)[-1]
        return cleaned.strip()

    @classmethod
    def clean_json_response(cls, text: str) -> str:
        """Extract the outermost JSON object from a response."""
        cleaned = cls.strip_reasoning(text)

        fenced = cls.CODE_FENCE.search(cleaned)
        if fenced:
            cleaned = fenced.group(1)

        start = cleaned.find('{')
        end = cleaned.rfind('}')
        if start == -1 or end <= start:
            return ""
        return cleaned[start:end + 1]

    @classmethod
    def parse_json(cls, text: str) -> Tuple[Optional[Dict[str, Any]], bool]:
        """
        Parse a JSON object out of raw generation output.

        Returns:
            Tuple of (parsed_json, is_valid)
        """
        cleaned = cls.clean_json_response(text)
        if not cleaned:
            return None, False

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError:
            # Fix trailing commas
            try:
                fixed = re.sub(r',\s*([}\]])', r'\1', cleaned)
                parsed = json.loads(fixed)
            except json.JSONDecodeError:
                return None, False

        if not isinstance(parsed, dict):
            return None, False
        return parsed, True

    @classmethod
    def parse_json_array(cls, text: str) -> Tuple[Optional[List[Any]], bool]:
        """
        Parse a JSON array out of raw generation output.

        Returns:
            Tuple of (parsed_list, is_valid)
        """
        cleaned = cls.strip_reasoning(text)
        fenced = cls.CODE_FENCE.search(cleaned)
        if fenced:
            cleaned = fenced.group(1)

        start = cleaned.find('[')
        end = cleaned.rfind(']')
        if start == -1 or end <= start:
            return None, False
        cleaned = cleaned[start:end + 1]

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError:
            try:
                parsed = json.loads(re.sub(r',\s*([}\]])', r'\1', cleaned))
            except json.JSONDecodeError:
                return None, False

        if not isinstance(parsed, list):
            return None, False
        return parsed, True
