import os
import unittest
from unittest.mock import patch

from vrfraffle.blockchain.api import CoordinatorClient


class DummyResponse:
    def __init__(self, json_data=None, content: bytes = b""):
        self._json = json_data
        if json_data is not None and not content:
            import json as _json

            content = _json.dumps(json_data).encode()
        self.content = content

    def json(self):
        return self._json

    def raise_for_status(self):
        pass


class DummySession:
    def __init__(self, response: DummyResponse):
        self.response = response
        self.calls = []

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "params": params,
                "json": json,
                "timeout": timeout,
            }
        )
        return self.response


class TestCoordinatorClient(unittest.TestCase):
    @patch("vrfraffle.blockchain.api.open_session")
    @patch("vrfraffle.blockchain.api.load_dotenv")
    def test_requires_fqdn(self, mock_load_dotenv, mock_open_session):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                CoordinatorClient()
        mock_open_session.assert_not_called()

    @patch("vrfraffle.blockchain.api.get_jwt_token", return_value="jwt-token")
    @patch("vrfraffle.blockchain.api.open_session")
    def test_init_sets_base_url_and_tokens(self, mock_open_session, mock_get_jwt):
        session = DummySession(DummyResponse(json_data={}))
        mock_open_session.return_value = (session, "csrf-token")
        client = CoordinatorClient(base_fqdn="vrf.example.com")
        self.assertEqual(client.base_url, "https://vrf.example.com")
        self.assertEqual(client.csrf, "csrf-token")
        self.assertEqual(client.jwt, "jwt-token")

    @patch("vrfraffle.blockchain.api.get_jwt_token", return_value="jwt-token")
    @patch("vrfraffle.blockchain.api.open_session")
    def test_request_random_words(self, mock_open_session, mock_get_jwt):
        session = DummySession(DummyResponse(json_data={"request_id": "42"}))
        mock_open_session.return_value = (session, "csrf")
        client = CoordinatorClient(base_fqdn="host")

        request_id = client.request_random_words(
            key_hash="0xabc",
            subscription_id=2**70,
            request_confirmations=3,
            callback_gas_limit=500000,
            num_words=1,
        )

        self.assertEqual(request_id, 42)
        call = session.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], "https://host/api/v1/vrf/requests")
        self.assertEqual(call["json"]["subscription_id"], str(2**70))
        self.assertEqual(call["json"]["num_words"], 1)
        self.assertEqual(call["headers"]["X-CSRFTOKEN"], "csrf")
        self.assertEqual(call["headers"]["Authorization"], "Bearer jwt-token")

    @patch("vrfraffle.blockchain.api.get_jwt_token", return_value="jwt-token")
    @patch("vrfraffle.blockchain.api.open_session")
    def test_request_random_words_rejects_malformed_response(
        self, mock_open_session, mock_get_jwt
    ):
        session = DummySession(DummyResponse(json_data={"status": "queued"}))
        mock_open_session.return_value = (session, "csrf")
        client = CoordinatorClient(base_fqdn="host")
        with self.assertRaises(RuntimeError):
            client.request_random_words(
                key_hash="0xabc",
                subscription_id=1,
                request_confirmations=3,
                callback_gas_limit=500000,
                num_words=1,
            )

    @patch("vrfraffle.blockchain.api.get_jwt_token", return_value="jwt-token")
    @patch("vrfraffle.blockchain.api.open_session")
    def test_transfer_posts_amount_as_string(self, mock_open_session, mock_get_jwt):
        session = DummySession(
            DummyResponse(json_data={"status": "success", "tx_hash": "0xfeed"})
        )
        mock_open_session.return_value = (session, "csrf")
        client = CoordinatorClient(base_fqdn="host")

        result = client.transfer("0xWinner", 4 * 10**16)

        self.assertEqual(result, {"status": "success", "tx_hash": "0xfeed"})
        call = session.calls[0]
        self.assertEqual(call["url"], "https://host/api/v1/wallet/transfer")
        self.assertEqual(
            call["json"], {"recipient": "0xWinner", "amount": str(4 * 10**16)}
        )

    @patch("vrfraffle.blockchain.api.get_jwt_token")
    @patch("vrfraffle.blockchain.api.open_session")
    def test_init_reports_session_error(self, mock_open_session, mock_get_jwt):
        mock_open_session.side_effect = RuntimeError("network unreachable")
        with self.assertRaises(RuntimeError) as ctx:
            CoordinatorClient(base_fqdn="vrf.example.com")
        self.assertIn("network unreachable", str(ctx.exception))
        mock_get_jwt.assert_not_called()


if __name__ == "__main__":
    unittest.main()
