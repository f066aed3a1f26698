"""Resolution of batch run settings into a start request payload."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from magicpod_api_client.errors import SettingMismatchError

log = logging.getLogger(__name__)

TEST_SETTINGS_NUMBER_KEY = "test_settings_number"
# Older servers named the selector test_condition_number.
SELECTOR_KEYS = (TEST_SETTINGS_NUMBER_KEY, "test_condition_number")
TEST_SETTINGS_KEY = "test_settings"
CONCURRENCY_KEY = "concurrency"


@dataclass(frozen=True, kw_only=True)
class ResolvedSetting:
    """Request payload and the endpoint family it targets."""

    payload: str
    is_group: bool


def resolve_setting(test_settings_number: int, setting: str) -> ResolvedSetting:
    """Merge the settings selector with a JSON setting.

    Args:
        test_settings_number: Number of test settings stored on the server,
            0 when unset
        setting: Test setting in JSON format, may be empty

    Returns:
        Payload to send and whether it starts a cross batch run

    Raises:
        SettingMismatchError: If the setting embeds a different selector

    """
    if not setting:
        payload = json.dumps({TEST_SETTINGS_NUMBER_KEY: test_settings_number})
        return ResolvedSetting(payload=payload, is_group=test_settings_number != 0)

    try:
        parsed = json.loads(setting)
    except json.JSONDecodeError:
        log.debug("Setting is not valid JSON, forwarding it as is")
        parsed = None

    if not isinstance(parsed, dict):
        return ResolvedSetting(payload=setting, is_group=test_settings_number != 0)

    has_test_settings = TEST_SETTINGS_KEY in parsed
    embedded_numbers = embedded_selectors(parsed)

    payload = setting
    if test_settings_number != 0:
        if any(number != test_settings_number for number in embedded_numbers):
            raise SettingMismatchError(
                "--test_settings_number and --setting have different number"
            )
        payload = json.dumps(
            merge_test_settings_number(parsed, test_settings_number)
        )

    is_group = test_settings_number != 0 or has_test_settings or bool(embedded_numbers)
    return ResolvedSetting(payload=payload, is_group=is_group)


def embedded_selectors(setting: dict[str, Any]) -> list[Any]:
    """Return every selector value written in the setting, null ones included."""
    return [setting[key] for key in SELECTOR_KEYS if key in setting]


def merge_test_settings_number(
    setting: dict[str, Any], test_settings_number: int
) -> dict[str, Any]:
    """Inject the selector into a parsed setting.

    A flat setting such as ``{"model": "Nexus 5X"}`` is rewritten to
    ``{"test_settings": [{"model": "Nexus 5X"}]}`` so the stored test settings
    can be overridden by it.
    """
    merged = {k: v for k, v in setting.items() if k not in SELECTOR_KEYS}
    merged[TEST_SETTINGS_NUMBER_KEY] = test_settings_number

    if TEST_SETTINGS_KEY in setting:
        return merged

    reserved = {*SELECTOR_KEYS, CONCURRENCY_KEY}
    misc_settings = {k: v for k, v in merged.items() if k not in reserved}
    if misc_settings:
        merged = {k: v for k, v in merged.items() if k in reserved}
        merged[TEST_SETTINGS_KEY] = [misc_settings]
    return merged
