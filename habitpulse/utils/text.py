TELEGRAM_MESSAGE_LIMIT = 4096


def truncate(text: str, max_length: int = TELEGRAM_MESSAGE_LIMIT) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def compose_message(title: str, body: str | None, max_length: int = TELEGRAM_MESSAGE_LIMIT) -> str:
    body = (body or "").strip()
    if not body:
        return truncate(title, max_length)
    return truncate(f"{title}\n\n{body}", max_length)
