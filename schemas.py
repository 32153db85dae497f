"""
Request and response schemas

Movies, tickets and theatre seats are stored as arbitrary JSON objects in the
"movies", "tickets" and "theatre" collections and have no model here. Only the
payloads with required fields are declared.
"""
from typing import Optional

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    username: str = Field(..., description="Account name, at least 5 characters")
    password: str = Field(..., description="Plaintext password, at least 8 characters")


class PaymentNotice(BaseModel):
    mail: str = Field(..., min_length=3, description="Recipient email address")
    msg: str = Field(..., description="Email body")


class Message(BaseModel):
    msg: str


class LoginResult(Message):
    token: Optional[str] = Field(None, description="Signed identity token")
