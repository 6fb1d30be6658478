import os
import sys
import unittest
from unittest.mock import MagicMock, patch

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import TrackerClient


def fake_response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TrackerClient(base_url="http://testserver/", api_token="secret")

    @patch("client.requests.get")
    def test_today_sends_token(self, mock_get) -> None:
        mock_get.return_value = fake_response({"template": None})
        self.assertEqual(self.client.today("alice"), {"template": None})
        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], "http://testserver/today")
        self.assertEqual(kwargs["params"], {"user_id": "alice"})
        self.assertEqual(kwargs["headers"], {"X-API-Key": "secret"})

    @patch("client.requests.request")
    def test_log_set_drops_empty_params(self, mock_request) -> None:
        mock_request.return_value = fake_response({"id": 7})
        self.assertEqual(self.client.log_set(3, 1, 50.0, 12), 7)
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("POST", "http://testserver/sessions/3/sets"))
        self.assertNotIn("rir", kwargs["params"])
        self.assertEqual(kwargs["params"]["warmup"], "false")

    @patch("client.requests.request")
    def test_start_session(self, mock_request) -> None:
        mock_request.return_value = fake_response({"session": {"id": 1}, "is_new": True})
        data = self.client.start_session("alice", bodyweight=180.0)
        self.assertTrue(data["is_new"])
        _, kwargs = mock_request.call_args
        self.assertEqual(kwargs["params"], {"user_id": "alice", "bodyweight": 180.0})

    @patch("client.requests.get")
    def test_diet_history(self, mock_get) -> None:
        mock_get.return_value = fake_response([{"logged_on": "2024-03-04"}])
        rows = self.client.diet_history("alice", limit=5)
        self.assertEqual(rows[0]["logged_on"], "2024-03-04")
        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], "http://testserver/diet")
        self.assertEqual(kwargs["params"], {"user_id": "alice", "limit": 5})

    @patch("client.requests.request")
    def test_update_set_clear_rir(self, mock_request) -> None:
        mock_request.return_value = fake_response({"id": 4, "rir": None})
        self.client.update_set(4, clear_rir=True, reps=10)
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("PUT", "http://testserver/sessions/sets/4"))
        self.assertEqual(kwargs["params"], {"reps": 10, "clear_rir": "true"})

    @patch("client.requests.request")
    def test_http_errors_propagate(self, mock_request) -> None:
        resp = MagicMock()
        resp.raise_for_status.side_effect = RuntimeError("409")
        mock_request.return_value = resp
        with self.assertRaises(RuntimeError):
            self.client.finish_session(1)


if __name__ == "__main__":
    unittest.main()
