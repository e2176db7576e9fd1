import jwt
from datetime import datetime, timedelta, timezone
from orderdesk.config import settings


def create_token(sub: str) -> str:
    """Customer token as the account service issues it; orderdesk only reads them."""
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.JWT_EXP_MIN)
    payload = {"sub": sub, "iss": settings.JWT_ISS, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")


def token_subject(token: str) -> str | None:
    """Subject of a valid customer token, None for anything else."""
    try:
        data = jwt.decode(token, settings.APP_SECRET, algorithms=["HS256"], issuer=settings.JWT_ISS)
    except jwt.PyJWTError:
        return None
    return data.get("sub")
