import base64
import copy
import hashlib
import hmac

from pytest_bdd import given, parsers, scenarios, then, when

from hancock.params import normalize, parse_query
from hancock.signature import canonicalize, sign_params, sign_query, sign_url

scenarios("signing.feature")


@given(parsers.parse('the parameters "{query}"'))
def given_params(query, context):
    context["params"] = parse_query(query)
    context["original"] = copy.deepcopy(context["params"])


@given(parsers.parse('the same parameters in the order "{query}"'))
def given_reordered_params(query, context):
    context["reordered"] = parse_query(query)


@when(parsers.parse('I sign a "{method}" request as "{public_key}" with secret "{secret}" at time {now:d}'))
def sign_request(method, public_key, secret, now, context):
    context["signed"] = sign_params(method, public_key, secret, context["params"], now=now)
    context["query"] = sign_query(method, public_key, secret, context["params"], now=now)


@when(parsers.parse('I canonicalize them for method "{method}"'))
def canonicalize_params(method, context):
    context["canonical"] = canonicalize(method, context["params"])


@when(parsers.parse('I sign the URL "{url}" for "{method}" as "{public_key}" with secret "{secret}" at time {now:d}'))
def sign_a_url(url, method, public_key, secret, now, context):
    context["url"] = sign_url(method, public_key, secret, url, context["params"], now=now)


@then(parsers.parse('the signed query should start with "{prefix}"'))
def check_query_prefix(prefix, context):
    assert context["query"].startswith(prefix), context["query"]


@then(parsers.parse('the signature should be the HMAC of "{message}" with secret "{secret}"'))
def check_signature_value(message, secret, context):
    digest = hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()
    expected = base64.urlsafe_b64encode(digest).decode()
    assert normalize(context["query"])["data"] == [expected]
    assert context["signed"]["data"] == [expected]


@then(parsers.parse('both orders should canonicalize to "{expected}" for method "{method}"'))
def check_order_independent(expected, method, context):
    assert canonicalize(method, context["params"]) == expected
    assert canonicalize(method, context["reordered"]) == expected


@then(parsers.parse('the canonical string should be "{expected}"'))
def check_canonical(expected, context):
    assert context["canonical"] == expected


@then(parsers.parse('the signed parameter "{key}" should be exactly "{value}"'))
def check_signed_param(key, value, context):
    assert context["signed"][key] == [value]


@then(parsers.parse('the signed parameter "{key}" should not be "{value}"'))
def check_signed_param_replaced(key, value, context):
    assert len(context["signed"][key]) == 1
    assert context["signed"][key][0] != value


@then("the original parameters should be unchanged")
def check_original_unchanged(context):
    assert context["params"] == context["original"]


@then(parsers.parse('the signed URL should start with "{prefix}"'))
def check_url_prefix(prefix, context):
    assert context["url"].startswith(prefix), context["url"]


@then(parsers.parse('the signed URL should end with "{suffix}"'))
def check_url_suffix(suffix, context):
    assert context["url"].endswith(suffix), context["url"]
