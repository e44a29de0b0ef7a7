import unittest

from models.proxy import ProxyRequest
from routers.proxy.base import FORM, JSON, ResolvedRoute
from routers.proxy.encoding import (
    encode_form, encode_oauth_form, encode_request, flatten_form, format_scalar, parse_form,
    to_query_string,
)
from routers.proxy.errors import ProxyValidationError


def make_route(service="stripe", method="post", path="payment_intents", encoding=FORM):
    return ResolvedRoute(
        service=service,
        display_name=service.title(),
        method=method,
        base_url="https://api.example.com/v1",
        resolved_path=path,
        auth_header_name="Authorization",
        auth_header_value="Bearer tok",
        encoding=encoding,
    )


class TestFormEncoding(unittest.TestCase):
    def test_flat_object(self):
        """Top-level scalars keep their insertion order"""
        self.assertEqual(encode_form({"amount": 5000, "currency": "usd"}), "amount=5000&currency=usd")

    def test_nested_object_uses_brackets(self):
        self.assertEqual(
            encode_form({"transfer_data": {"destination": "acct_123"}}),
            "transfer_data[destination]=acct_123",
        )

    def test_deep_nesting_is_depth_first(self):
        data = {
            "amount": 100,
            "payment_method_options": {"card": {"request_three_d_secure": "any"}},
            "currency": "usd",
        }
        self.assertEqual(
            flatten_form(data),
            [
                ("amount", "100"),
                ("payment_method_options[card][request_three_d_secure]", "any"),
                ("currency", "usd"),
            ],
        )

    def test_scalar_list(self):
        self.assertEqual(
            encode_form({"payment_method_types": ["card", "us_bank_account"]}),
            "payment_method_types[]=card&payment_method_types[]=us_bank_account",
        )

    def test_list_of_objects_is_indexed(self):
        data = {"line_items": [{"price": "price_1", "quantity": 2}, {"price": "price_2", "quantity": 1}]}
        self.assertEqual(
            flatten_form(data),
            [
                ("line_items[0][price]", "price_1"),
                ("line_items[0][quantity]", "2"),
                ("line_items[1][price]", "price_2"),
                ("line_items[1][quantity]", "1"),
            ],
        )

    def test_none_values_are_omitted(self):
        self.assertEqual(encode_form({"a": None, "b": {"c": None, "d": 1}}), "b[d]=1")

    def test_values_are_percent_encoded(self):
        self.assertEqual(
            encode_form({"description": "Deck repair & paint", "metadata": {"job": "J/1"}}),
            "description=Deck%20repair%20%26%20paint&metadata[job]=J%2F1",
        )

    def test_empty_data(self):
        self.assertEqual(encode_form(None), "")
        self.assertEqual(encode_form({}), "")

    def test_top_level_must_be_object(self):
        with self.assertRaises(TypeError):
            flatten_form(["card"])
        with self.assertRaises(TypeError):
            flatten_form("card")

    def test_scalar_formatting(self):
        self.assertEqual(format_scalar(True), "true")
        self.assertEqual(format_scalar(False), "false")
        self.assertEqual(format_scalar(5000.0), "5000")
        self.assertEqual(format_scalar(12.5), "12.5")
        self.assertEqual(format_scalar(7), "7")


class TestFormParsing(unittest.TestCase):
    def test_round_trip_restores_nesting(self):
        """Parsing the encoded form reconstructs the structure, with string values"""
        data = {
            "amount": 5000,
            "metadata": {"project": "Kitchen remodel", "phase": "rough-in"},
            "line_items": [{"price": "price_1", "quantity": 2}],
            "payment_method_types": ["card", "link"],
            "capture": True,
        }
        self.assertEqual(
            parse_form(encode_form(data)),
            {
                "amount": "5000",
                "metadata": {"project": "Kitchen remodel", "phase": "rough-in"},
                "line_items": [{"price": "price_1", "quantity": "2"}],
                "payment_method_types": ["card", "link"],
                "capture": "true",
            },
        )

    def test_digit_keyed_metadata_stays_an_object(self):
        """Scalar members keyed by digits are not mistaken for a list"""
        self.assertEqual(
            parse_form(encode_form({"metadata": {"1": "a", "2": "b"}})),
            {"metadata": {"1": "a", "2": "b"}},
        )

    def test_scalar_list_keeps_order(self):
        self.assertEqual(
            parse_form("expand[]=customer&expand[]=invoice&limit=3"),
            {"expand": ["customer", "invoice"], "limit": "3"},
        )

    def test_parse_pairs(self):
        self.assertEqual(
            parse_form([("endpoint", "customers"), ("data[name]", "Acme")]),
            {"endpoint": "customers", "data": {"name": "Acme"}},
        )


class TestOAuthForm(unittest.TestCase):
    def test_authorization_code(self):
        body = encode_oauth_form("token", {"code": "abc", "redirect_uri": "https://app.example.com/cb"})
        self.assertEqual(
            body,
            "grant_type=authorization_code&code=abc&redirect_uri=https%3A%2F%2Fapp.example.com%2Fcb",
        )

    def test_refresh(self):
        self.assertEqual(
            encode_oauth_form("refresh", {"refresh_token": "rt-1"}),
            "grant_type=refresh_token&refresh_token=rt-1",
        )

    def test_missing_field(self):
        with self.assertRaises(ProxyValidationError) as ctx:
            encode_oauth_form("token", {"code": "abc"})
        self.assertEqual(ctx.exception.extra["requiredParams"], ["redirect_uri"])


class TestEncodeRequest(unittest.TestCase):
    def test_form_post(self):
        request = ProxyRequest(service="stripe", endpoint="payment_intents", method="post",
                               data={"amount": 5000, "currency": "usd"})
        call = encode_request(make_route(), request)
        self.assertEqual(call.method, "post")
        self.assertEqual(call.url, "https://api.example.com/v1/payment_intents")
        self.assertEqual(call.content, "amount=5000&currency=usd")
        self.assertEqual(call.headers["Content-Type"], "application/x-www-form-urlencoded")
        self.assertEqual(call.headers["Authorization"], "Bearer tok")

    def test_get_moves_data_to_query_string(self):
        request = ProxyRequest(service="stripe", endpoint="customers", method="get",
                               data={"limit": 10, "email": "a b@example.com"})
        call = encode_request(make_route(method="get", path="customers"), request)
        self.assertIsNone(call.content)
        self.assertEqual(call.url, "https://api.example.com/v1/customers?limit=10&email=a%20b%40example.com")
        self.assertNotIn("Content-Type", call.headers)

    def test_qbo_query(self):
        request = ProxyRequest(service="qbo", endpoint="query", method="get",
                               data={"query": "SELECT * FROM Invoice"}, realm_id="123")
        route = make_route(service="qbo", method="get", path="company/123/query", encoding=JSON)
        call = encode_request(route, request)
        self.assertEqual(call.url, "https://api.example.com/v1/company/123/query?query=SELECT%20*%20FROM%20Invoice")
        self.assertIsNone(call.content)

    def test_qbo_query_requires_statement(self):
        request = ProxyRequest(service="qbo", endpoint="query", method="get", data={}, realm_id="123")
        route = make_route(service="qbo", method="get", path="company/123/query", encoding=JSON)
        with self.assertRaises(ProxyValidationError):
            encode_request(route, request)

    def test_json_body_drops_none(self):
        request = ProxyRequest(service="qbo", endpoint="invoice", method="post",
                               data={"CustomerRef": {"value": "1"}, "DueDate": None})
        route = make_route(service="qbo", path="company/123/invoice", encoding=JSON)
        call = encode_request(route, request)
        self.assertEqual(call.content, '{"CustomerRef": {"value": "1"}}')
        self.assertEqual(call.headers["Content-Type"], "application/json")

    def test_query_string_helper(self):
        self.assertEqual(to_query_string([("expand[]", "customer")]), "expand[]=customer")


if __name__ == '__main__':
    unittest.main()
