"""Runtime configuration state management."""

# Global runtime configuration state
_config = {
    "attr_truncation_limit": 1000,
    "capture_message_body": True,
}


def set_attr_truncation_limit(value: int) -> None:
    _config["attr_truncation_limit"] = value


def get_attr_truncation_limit() -> int:
    return _config["attr_truncation_limit"]


def set_capture_message_body(value: bool) -> None:
    _config["capture_message_body"] = value


def get_capture_message_body() -> bool:
    return _config["capture_message_body"]
