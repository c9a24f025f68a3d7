from dataclasses import dataclass
from typing import Optional

from fastapi import Header
from jose import jwt, JWTError

from zapshift.config import JWT_SECRET
from zapshift.errors import Forbidden, Unauthenticated


@dataclass(frozen=True)
class CallerIdentity:
    email: str


def verify_token(authorization: Optional[str] = Header(None)) -> CallerIdentity:
    if not authorization or not JWT_SECRET:
        raise Unauthenticated()
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise Unauthenticated()
    if scheme.lower() != "bearer":
        raise Unauthenticated()
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
    except JWTError:
        raise Unauthenticated()

    email = claims.get("email")
    if not email:
        raise Unauthenticated("Token carries no email")
    return CallerIdentity(email=email)


def require_same_email(identity: CallerIdentity, email: str) -> None:
    if identity.email.lower() != email.lower():
        raise Forbidden()
