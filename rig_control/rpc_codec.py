"""
Miner API Codec
矿机API编解码

Encodes cgminer/sgminer style API requests and decodes their replies.

Quirks handled when decoding:
- Trailing null bytes
- Missing commas between concatenated objects in some firmware
- Floats are kept as Decimal so no precision is added or lost
"""
import json
import re
from decimal import Decimal
from typing import Any, Dict, Iterable

from .errors import ProtocolError

OK_STATUSES = frozenset({'S', 'I'})
MULTI_SEPARATOR = '+'


def encode(command: str, parameter: str = "") -> bytes:
    """Build the JSON request for ``command``"""
    command = command.strip().lower()
    if not command:
        raise ValueError("Command must be a non-empty string")
    return json.dumps({"command": command, "parameter": parameter}).encode('utf-8')


def encode_multi(commands: Iterable[str]) -> bytes:
    names = [c.strip().lower() for c in commands]
    if not names or not all(names):
        raise ValueError("At least one non-empty command is required")
    return encode(MULTI_SEPARATOR.join(names))


def _loads(text: str) -> Any:
    return json.loads(text, parse_float=Decimal)


def decode(raw: bytes, command: str = "") -> Dict[str, Any]:
    """
    Parse an API reply into a dict

    Raises:
        ProtocolError: Empty or unparseable reply
    """
    data = raw.rstrip(b'\x00').decode('utf-8', errors='replace').strip()
    if not data:
        raise ProtocolError("Empty response", command=command)

    try:
        result = _loads(data)
    except json.JSONDecodeError:
        repaired = re.sub(r'}\s*{', '},{', data)
        repaired = re.sub(r']\s*\[', '],[', repaired)
        try:
            result = _loads(repaired)
        except json.JSONDecodeError as e:
            raise ProtocolError(
                f"Invalid JSON response: {str(e)[:50]}... Preview: {data[:100]}",
                command=command
            )

    if not isinstance(result, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(result).__name__}", command=command)
    return result


def check_status(response: Dict[str, Any], command: str = "") -> Dict[str, Any]:
    """Require a successful STATUS section; returns the response unchanged"""
    status = response.get('STATUS')
    if not isinstance(status, list) or not status or not isinstance(status[0], dict):
        raise ProtocolError("Response has no STATUS section", command=command)

    code = status[0].get('STATUS')
    msg = str(status[0].get('Msg', ''))
    if code not in OK_STATUSES:
        raise ProtocolError(
            f"Command '{command}' failed with status {code}: {msg}",
            command=command, status=str(code), msg=msg
        )
    return response


def split_multi(response: Dict[str, Any], commands: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """
    Split a ``a+b+c`` reply into one checked response per command.

    Each section of a multi-command reply is a one-element list wrapping the
    reply the single command would have produced.
    """
    result = {}
    for command in commands:
        section = response.get(command)
        if not isinstance(section, list) or not section or not isinstance(section[0], dict):
            raise ProtocolError(f"Multi-command reply lacks section '{command}'", command=command)
        result[command] = check_status(section[0], command)
    return result


def decode_key_values(text: str) -> Dict[str, str]:
    """
    Decode ``key=value`` lines.

    Blank lines are skipped; the first ``=`` separates key from value.
    """
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if '=' not in line:
            raise ProtocolError(f"Expected key=value line, got: {line[:80]}")
        key, value = line.split('=', 1)
        values[key.strip()] = value.strip()
    return values
