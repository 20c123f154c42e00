# tests/core/test_request.py
"""
Unit tests for the LCSRequest facade: URI helpers, variables, payload
decoding with nonce hooks, headers and client metadata.
"""

import json
import re
import pytest

from lcs_request.core.error_policy import ErrorPolicy
from lcs_request.core.exceptions import RequestConfigurationError
from lcs_request.core.request import LCSRequest
from lcs_request.core.responses import Proceed, Terminated
from lcs_request.models.nonce_models import NONCES_KEY
from lcs_request.models.request_context import RequestContext


JSON_HEADERS = {"Content-Type": "application/json"}
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class TestUri:
    """URI and path segments"""

    def test_get_uri(self, make_request):
        lcs = make_request(uri="/products/item?id=123")
        assert lcs.get_uri() == "/products/item?id=123"
        assert lcs.get_uri(strip_query_args=True) == "/products/item"

    @pytest.mark.parametrize("position,strip,expected", [
        (1, False, "item"),
        ("start", False, "products"),
        ("end", False, "view?id=123"),
        (2, True, "view"),
        ("1", False, "item"),
        (5, False, None),
        (-1, False, None),
    ])
    def test_get_uri_path_name(self, make_request, position, strip, expected):
        lcs = make_request(uri="/products/item/view?id=123")
        assert lcs.get_uri_path_name(position, strip) == expected

    def test_invalid_position_is_ignored_when_silent(self, make_request):
        assert make_request(uri="/a/b").get_uri_path_name("middle") is None

    def test_invalid_position_raises_when_raising(self, make_request):
        lcs = make_request(policy=ErrorPolicy.RAISING, uri="/a/b")
        with pytest.raises(RequestConfigurationError) as exc_info:
            lcs.get_uri_path_name("middle")
        assert exc_info.value.details["argument"] == "position"


class TestRequestVars:
    """Request variable access over query + form"""

    def test_merged_from_query_and_form(self, make_request):
        lcs = make_request(query={"a": "1", "b": "query"}, form={"b": "form"})
        assert lcs.get_request_var("a") == "1"
        assert lcs.get_request_var("b") == "form"

    def test_set_get_unset(self, make_request):
        lcs = make_request()
        lcs.set_request_var("page", 2)
        assert lcs.get_request_var("page") == 2
        lcs.unset_request_var("page")
        assert lcs.get_request_var("page") is None

    def test_unset_missing_silent(self, make_request):
        make_request().unset_request_var("missing")

    def test_unset_missing_raising(self, make_request):
        with pytest.raises(RequestConfigurationError):
            make_request(policy=ErrorPolicy.RAISING).unset_request_var("missing")

    def test_does_not_mutate_context(self, make_request):
        lcs = make_request(query={"a": "1"})
        lcs.set_request_var("a", "2")
        assert lcs.context.query == {"a": "1"}


class TestSessionVars:
    """Session variable access"""

    def test_set_get_unset(self, make_request, session):
        lcs = make_request()
        lcs.set_session_var("user", "ada")
        assert lcs.get_session_var("user") == "ada"
        assert session.get("user") == "ada"

        lcs.unset_session_var("user")
        assert lcs.get_session_var("user") is None

    def test_access_starts_session(self, make_request, session):
        make_request().get_session_var("anything")
        assert session.is_active

    def test_start_and_stop(self, make_request, session):
        lcs = make_request()
        assert lcs.start_session() is True
        lcs.stop_session()
        assert not session.is_active

    def test_unset_missing_raising(self, make_request):
        with pytest.raises(RequestConfigurationError):
            make_request(policy=ErrorPolicy.RAISING).unset_session_var("missing")

    @pytest.mark.parametrize("key", ["nonces", "NONCES_RESET_DATA"])
    def test_reserved_keys_are_protected(self, make_request, session, key):
        lcs = make_request()
        lcs.create_nonce("keep")
        before = session.to_dict()

        lcs.set_session_var(key, {})
        lcs.unset_session_var(key)
        assert session.to_dict() == before

        with pytest.raises(RequestConfigurationError):
            make_request(policy=ErrorPolicy.RAISING).set_session_var(key, {})


class TestGetRequestData:
    """Payload decoding"""

    def test_json_body_merged_over_query(self, make_request):
        lcs = make_request(headers=JSON_HEADERS, query={"a": "q", "b": "q"}, body=b'{"b": 2, "c": [1]}')
        result = lcs.get_request_data()
        assert isinstance(result, Proceed)
        assert result.value == {"a": "q", "b": 2, "c": [1]}

    def test_empty_json_body_uses_query(self, make_request):
        result = make_request(headers=JSON_HEADERS, query={"a": "1"}).get_request_data()
        assert result.value == {"a": "1"}

    def test_malformed_json_signals_none(self, make_request):
        result = make_request(headers=JSON_HEADERS, body=b"{broken").get_request_data()
        assert isinstance(result, Proceed)
        assert result.value is None

    def test_non_object_json_signals_none(self, make_request):
        assert make_request(headers=JSON_HEADERS, body=b"[1, 2]").get_request_data().value is None

    @pytest.mark.parametrize("nonce_name", [5, {"x": 1}, ["a"], True])
    def test_non_string_nonce_name_signals_none(self, make_request, session, nonce_name):
        body = json.dumps({"isNonceRetrieval": True, "nonce_name": nonce_name}).encode()

        result = make_request(headers=JSON_HEADERS, body=body).get_request_data()

        assert isinstance(result, Proceed)
        assert result.value is None
        assert session.get(NONCES_KEY) is None

    def test_form_fields(self, make_request):
        result = make_request(headers=FORM_HEADERS, form={"name": "ada"}, body=b"name=ada").get_request_data()
        assert result.value == {"name": "ada"}

    def test_raw_body_parsed_as_query_string(self, make_request):
        result = make_request(headers={"Content-Type": "text/plain"}, body=b"a=1&b=&c=x%20y").get_request_data()
        assert result.value == {"a": "1", "b": "", "c": "x y"}

    def test_nonce_retrieval_terminates_with_token(self, make_request, session):
        lcs = make_request(headers=JSON_HEADERS, body=b'{"isNonceRetrieval": true}')

        result = lcs.get_request_data()

        assert isinstance(result, Terminated)
        assert result.status_code == 200
        body = result.json()
        assert body["success"] is True
        assert re.match(r"^[0-9a-f]{64}$", body["data"])
        assert session.get(NONCES_KEY)[body["data"]]["action"] == "lcs_request_nonce"

    def test_nonce_retrieval_with_custom_name(self, make_request, session):
        lcs = make_request(query={"isNonceRetrieval": "1", "nonce_name": "checkout"}, method="GET")
        token = lcs.get_request_data().json()["data"]
        assert session.get(NONCES_KEY)[token]["action"] == "checkout"

    def test_secure_with_valid_nonce_proceeds(self, make_request):
        token = make_request().create_nonce("lcs_request_nonce")
        body = json.dumps({"secure": True, "nonce": token, "x": 1}).encode()

        result = make_request(headers=JSON_HEADERS, body=body).get_request_data()

        assert isinstance(result, Proceed)
        assert result.value["x"] == 1

    def test_secure_replay_is_rejected(self, make_request):
        token = make_request().create_nonce("lcs_request_nonce")
        body = json.dumps({"secure": True, "nonce": token}).encode()

        make_request(headers=JSON_HEADERS, body=body).get_request_data()
        result = make_request(headers=JSON_HEADERS, body=body).get_request_data()

        assert result.status_code == 400
        assert result.json() == {"success": False, "data": "Unauthorized action."}

    def test_secure_without_nonce_is_rejected(self, make_request):
        result = make_request(headers=JSON_HEADERS, body=b'{"secure": "true"}').get_request_data()
        assert result.json()["data"] == "Unauthorized action."

    def test_verified_once_per_request(self, make_request):
        token = make_request().create_nonce("lcs_request_nonce")
        body = json.dumps({"secure": True, "nonce": token}).encode()
        lcs = make_request(headers=JSON_HEADERS, body=body)

        assert lcs.get_request_data().is_terminated is False
        assert lcs.get_request_data().is_terminated is False

    @pytest.mark.parametrize("flag", [False, 0, "0", "false", "", "off"])
    def test_falsy_secure_flags_skip_verification(self, make_request, flag):
        body = json.dumps({"secure": flag}).encode()
        assert make_request(headers=JSON_HEADERS, body=body).get_request_data().is_terminated is False


class TestSetHeader:
    """Response header queue"""

    def test_known_key(self, make_request):
        lcs = make_request()
        lcs.set_header("cache_control", "no-store")
        assert lcs.response_headers == {"Cache-Control": "no-store"}

    def test_append_without_replace(self, make_request):
        lcs = make_request()
        lcs.set_header("vary", "Origin")
        lcs.set_header("vary", "Accept", replace=False)
        assert lcs.response_headers["Vary"] == "Origin, Accept"

    def test_unknown_key_silent(self, make_request):
        lcs = make_request()
        lcs.set_header("x_made_up", "1")
        assert lcs.response_headers == {}

    def test_unknown_key_raising(self, make_request):
        with pytest.raises(RequestConfigurationError, match="Invalid header type: x_made_up"):
            make_request(policy=ErrorPolicy.RAISING).set_header("x_made_up", "1")

    def test_applied_to_emitted_responses(self, make_request):
        lcs = make_request()
        lcs.set_header("ac_max_age", 600)
        response = lcs.send_json_error("nope").response
        assert response.headers["access-control-max-age"] == "600"


class TestClientMetadata:
    """Client IP, user agent, URL helpers"""

    def test_client_ip_from_socket(self, make_request):
        assert make_request().get_client_ip_address() == "203.0.113.7"

    def test_client_ip_header_precedence(self, make_request):
        lcs = make_request(headers={"X-Forwarded-For": "198.51.100.1", "Client-IP": "198.51.100.2"})
        assert lcs.get_client_ip_address() == "198.51.100.2"

    def test_client_ip_first_of_chain(self, make_request):
        lcs = make_request(headers={"X-Forwarded-For": "2001:db8::1, 10.0.0.1"})
        assert lcs.get_client_ip_address() == "2001:db8::1"

    def test_client_ip_invalid(self, make_request):
        assert make_request(headers={"X-Forwarded-For": "not-an-ip"}).get_client_ip_address() == "INVALID IP"

    def test_client_ip_unknown(self, make_request):
        assert make_request(client_host=None).get_client_ip_address() == "INVALID IP"

    def test_user_agent_desktop_chrome(self, make_request):
        ua = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
        info = make_request(headers={"User-Agent": ua}).get_user_agent()
        assert info == {
            "user_agent": ua,
            "browser": "Google Chrome",
            "platform": "Windows",
            "device_type": "Desktop",
        }

    def test_user_agent_iphone_safari(self, make_request):
        ua = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Version/17.0 Mobile/15E148 Safari/604.1"
        info = make_request(headers={"User-Agent": ua}).get_user_agent()
        assert info["browser"] == "Apple Safari"
        assert info["platform"] == "Mac OS"
        assert info["device_type"] == "Mobile"

    def test_user_agent_missing(self, make_request):
        info = make_request().get_user_agent()
        assert info["user_agent"] == "UNKNOWN"
        assert info["browser"] == "Unknown Browser"

    def test_get_url(self, make_request):
        lcs = make_request(method="GET", uri="/shop?page=2", https=True)
        assert lcs.get_url() == "example.com/shop?page=2"
        assert lcs.get_url(include_protocol=True) == "https://example.com/shop?page=2"

    def test_get_url_prefers_referer_for_ajax(self, make_request):
        lcs = make_request(uri="/ajax", headers={"Referer": "https://example.com/cart?step=1"})
        assert lcs.get_url(include_protocol=True) == "https://example.com/cart?step=1"
        assert lcs.get_url(include_protocol=True, isolate_ajax_effects=False) == "http://example.com/ajax"

    def test_get_url_query_arg(self, make_request):
        lcs = make_request(method="GET", uri="/shop?page=2&sort=asc")
        assert lcs.get_url_query_arg() == "page=2&sort=asc"
        assert lcs.get_url_query_arg("https://example.com/") is None

    def test_domain_and_host(self, make_request):
        lcs = make_request(https=True)
        assert lcs.get_domain() == "example.com"
        assert lcs.get_domain(include_protocol=True) == "https://example.com"
        assert lcs.get_host(include_protocol=True) == "https://example.com"

    def test_domain_defaults_to_localhost(self, session):
        lcs = LCSRequest(RequestContext(), session)
        assert lcs.get_domain() == "localhost"
