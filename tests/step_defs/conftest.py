"""Shared BDD step definitions for all feature files.

Step definitions live here (not in common_steps.py) because pytest-bdd
registers step fixtures in the caller module's locals. Only conftest.py
modules are auto-discovered by pytest, so shared steps MUST be defined here.

All parametric steps use parsers.parse(); plain strings match exactly.
"""
import pytest
from pytest_bdd import given, parsers, then

from hancock.keys import register_key
from hancock.schemas import FreshnessPolicy


@pytest.fixture
def context():
    return {}


# ── Given ──────────────────────────────────────────────────────────────────────

@given(parsers.parse('the API key "{public_key}" with secret "{secret}" enforcing a {window:d} second window'))
def api_key_enforcing(public_key, secret, window, db_session):
    return register_key(db_session, public_key, secret, FreshnessPolicy.enforce(window))


@given(parsers.parse('the API key "{public_key}" with secret "{secret}" skipping the freshness check'))
def api_key_skipping_freshness(public_key, secret, db_session):
    return register_key(db_session, public_key, secret, FreshnessPolicy.skip_freshness())


@given(parsers.parse('the API key "{public_key}" with secret "{secret}" and verification disabled'))
def api_key_disabled(public_key, secret, db_session):
    return register_key(db_session, public_key, secret, FreshnessPolicy.disabled_insecure())


# ── Then ───────────────────────────────────────────────────────────────────────

@then(parsers.parse("the response status should be {code:d}"))
def check_status_code(code, context):
    assert context["response"].status_code == code, (
        f"Expected {code}, got {context['response'].status_code}: "
        f"{context['response'].text}"
    )
