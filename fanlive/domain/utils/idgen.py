from ulid import ULID


def new_ulid(prefix: str | None = None) -> str:
    value = str(ULID()).lower()
    return f"{prefix}{value}" if prefix else value


def new_connection_key() -> str:
    return new_ulid("cn_")


def new_guest_id() -> str:
    return new_ulid("guest_")


def new_message_id() -> str:
    return new_ulid("lm_")

