import json
import re

_decoder = json.JSONDecoder()


def strict_json_loads(text: str) -> dict:
    """Return the first JSON object embedded in free text (prose, code fences...)."""
    for m in re.finditer(r"\{", text or ""):
        try:
            obj, _ = _decoder.raw_decode(text, m.start())
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    raise ValueError("No valid JSON found in output")
