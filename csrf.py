import time

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings

DEFAULT_SUBJECT = "back-office"


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.csrf_secret, salt="tourops-csrf")


def generate_csrf_token(subject: str = DEFAULT_SUBJECT, max_age_hours: int = 8) -> str:
    expiry = int(time.time()) + max_age_hours * 3600
    return _serializer().dumps({"s": subject, "exp": expiry})


def validate_csrf_token(
    token: object, subject: str = DEFAULT_SUBJECT, max_age_hours: int = 8
) -> bool:
    if not isinstance(token, str) or not token:
        return False
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadSignature:
        return False

    if data.get("s") != subject:
        return False

    return int(time.time()) <= int(data.get("exp", 0))
