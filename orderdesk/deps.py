from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from orderdesk.realtime import Notifier
from orderdesk.util.security import token_subject

auth_scheme = HTTPBearer(auto_error=False)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.relay


def optional_customer(
    creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    customer_id: str | None = Header(default=None, alias="X-Customer-Id"),
) -> str | None:
    """Customer placing the order, if they identified themselves.

    Guests are welcome, so a missing or bad token never rejects the request.
    """
    if creds:
        sub = token_subject(creds.credentials)
        if sub:
            return sub
    return customer_id or None
