import unittest
from unittest import mock

import requests

from techpulse.extraction.fulltext import (
    extract_article_text,
    extract_main_text,
    fetch_and_extract,
    validate_fetch_url,
)


class TestFulltextSecurity(unittest.TestCase):
    def test_blocks_localhost(self):
        r = fetch_and_extract("http://localhost:1234/")
        self.assertEqual(r.status, "blocked")

    def test_blocks_private_ip(self):
        r = fetch_and_extract("http://127.0.0.1:1234/")
        self.assertEqual(r.status, "blocked")

    def test_blocks_non_http_scheme(self):
        r = fetch_and_extract("file:///etc/passwd")
        self.assertEqual(r.status, "blocked")

    def test_validate_reports_reason(self):
        self.assertEqual(validate_fetch_url("http://10.0.0.5/admin"), "blocked_private_ip")
        self.assertIsNone(validate_fetch_url("https://blog.example.com/post"))


class TestExtractMainText(unittest.TestCase):
    def test_prefers_article_body(self):
        body = " ".join(["Our storage tier moved to a log structured design."] * 6)
        html = f"<html><body><nav>Home About</nav><article><p>{body}</p></article></body></html>"
        text = extract_main_text(html)
        self.assertIsNotNone(text)
        self.assertIn("log structured design", text)
        self.assertNotIn("Home About", text)

    def test_too_short_returns_none(self):
        self.assertIsNone(extract_main_text("<html><body><p>hi</p></body></html>"))


class TestFetchAndExtractFailures(unittest.TestCase):
    def _response(self, body: bytes):
        resp = mock.Mock(status_code=200, encoding="utf-8")
        resp.iter_content.return_value = [body]
        return resp

    @mock.patch("techpulse.extraction.fulltext.extract_main_text", side_effect=RuntimeError("parser blew up"))
    @mock.patch("techpulse.extraction.fulltext.requests.get")
    def test_parser_error_becomes_error_status(self, get, _extract):
        get.return_value = self._response(b"<html><body><p>hello</p></body></html>")
        r = fetch_and_extract("https://blog.example.com/post")
        self.assertEqual(r.status, "error")
        self.assertIsNone(r.text)
        self.assertEqual(r.error, "parser blew up")
        self.assertIsNone(extract_article_text("https://blog.example.com/post"))

    @mock.patch("techpulse.extraction.fulltext.requests.get")
    def test_transport_error_becomes_error_status(self, get):
        get.side_effect = requests.ConnectionError("connection reset")
        r = fetch_and_extract("https://blog.example.com/post")
        self.assertEqual(r.status, "error")
        self.assertIsNone(r.text)


if __name__ == "__main__":
    unittest.main()
