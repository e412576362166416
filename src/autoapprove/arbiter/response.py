"""
Validation of judgment-service responses.

Models sometimes wrap the JSON object in a markdown fence even when asked for
a bare object. The fence is stripped; nothing else is repaired. The object
must then match ArbiterVerdict exactly.
"""

import json
import re

from pydantic import ValidationError

from autoapprove.errors import ArbiterEmptyResponseError, ArbiterParseError, ArbiterSchemaError
from autoapprove.schema import ArbiterVerdict

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$")


def extract_json(text: str) -> str | None:
    """
    Return the JSON object text, without a surrounding code fence.

    Returns None for blank text.
    """
    if not text or not text.strip():
        return None

    text = text.strip()
    match = _FENCE_PATTERN.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_verdict(content: str | None, model: str = "") -> ArbiterVerdict:
    """
    Parse model output into an ArbiterVerdict.

    Raises:
        ArbiterEmptyResponseError: content is missing or blank
        ArbiterParseError: content is not a JSON object
        ArbiterSchemaError: the object is not exactly {decision, reason}
    """
    candidate = extract_json(content or "")
    if candidate is None:
        raise ArbiterEmptyResponseError(model=model)

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ArbiterParseError(
            model=model,
            raw_response=content or "",
            parse_error=str(e),
        ) from e

    if not isinstance(data, dict):
        raise ArbiterSchemaError(
            model=model,
            raw_response=content or "",
            validation_error=f"expected a JSON object, got {type(data).__name__}",
        )

    try:
        return ArbiterVerdict.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'response'}: {err['msg']}"
            for err in e.errors()
        )
        raise ArbiterSchemaError(
            model=model,
            raw_response=content or "",
            validation_error=errors,
        ) from e
