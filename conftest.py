"""
Common fixtures for connector tests.
"""

import json
import os
import sys
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

sys.path.insert(0, os.path.dirname(__file__))


def _private_pem(key) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSalesforce:
    """httpx handler standing in for the token endpoint and the REST API."""

    def __init__(
        self,
        token_status: int = 200,
        token_payload: Optional[Dict[str, Any]] = None,
        token_body: Optional[str] = None,
        records: Optional[List[Dict[str, Any]]] = None,
    ):
        self.token_status = token_status
        self.token_payload = token_payload if token_payload is not None else {"access_token": "T1"}
        self.token_body = token_body
        self.records = records if records is not None else [{"Id": "001", "Name": "Acme"}]
        self.token_requests: List[httpx.Request] = []
        self.api_requests: List[httpx.Request] = []

    def token_form(self, index: int = -1) -> Dict[str, str]:
        form = parse_qs(self.token_requests[index].content.decode())
        return {name: values[0] for name, values in form.items()}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/services/oauth2/token":
            self.token_requests.append(request)
            if self.token_body is not None:
                return httpx.Response(self.token_status, text=self.token_body)
            return httpx.Response(self.token_status, content=json.dumps(self.token_payload))

        self.api_requests.append(request)
        return httpx.Response(
            200,
            content=json.dumps({"totalSize": len(self.records), "done": True, "records": self.records}),
        )


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_pem(rsa_private_key):
    return _private_pem(rsa_private_key)


@pytest.fixture(scope="session")
def rsa_public_pem(rsa_private_key):
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture(scope="session")
def ec_private_pem():
    return _private_pem(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_salesforce():
    return FakeSalesforce()
