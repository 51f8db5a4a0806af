from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch

import httpx

from arbiter.services.evolution_service import get_credentials, phone_from_jid, send_text


def _agent(url=None, key=None):
    return SimpleNamespace(evolution_api_url=url, evolution_api_key=key)


class TestCredentials:
    @patch("arbiter.services.evolution_service.settings")
    def test_falls_back_to_global_settings(self, mock_settings):
        mock_settings.evolution_api_url = "https://evo.example.com"
        mock_settings.evolution_api_key = "global-key"
        assert get_credentials(_agent()) == ("https://evo.example.com", "global-key")

    def test_agent_credentials_win(self):
        agent = _agent("https://agent.example.com", "agent-key")
        assert get_credentials(agent) == ("https://agent.example.com", "agent-key")

    def test_manager_suffix_stripped(self):
        agent = _agent("https://evo.example.com/manager/", "agent-key")
        assert get_credentials(agent)[0] == "https://evo.example.com"

    def test_phone_from_jid(self):
        assert phone_from_jid("5511999990000@s.whatsapp.net") == "5511999990000"


class TestSendText:
    @patch("arbiter.services.evolution_service.httpx.Client")
    def test_posts_to_send_text_endpoint(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_response = Mock()
        mock_response.status_code = 201
        mock_client.post.return_value = mock_response

        agent = _agent("https://evo.example.com/manager", "agent-key")
        result = send_text("clinica", "5511999990000", "Olá!", agent=agent)

        assert result is True
        call_args = mock_client.post.call_args
        assert call_args[0][0] == "https://evo.example.com/message/sendText/clinica"
        assert call_args[1]["headers"]["apikey"] == "agent-key"
        assert call_args[1]["json"] == {"number": "5511999990000", "text": "Olá!"}

    @patch("arbiter.services.evolution_service.httpx.Client")
    def test_gateway_error_returns_false(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_response = Mock()
        mock_response.status_code = 500
        mock_client.post.return_value = mock_response

        assert send_text("clinica", "5511", "Olá!", agent=_agent("https://evo", "k")) is False

    @patch("arbiter.services.evolution_service.httpx.Client")
    def test_network_error_returns_false(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.side_effect = httpx.ConnectError("refused")

        assert send_text("clinica", "5511", "Olá!", agent=_agent("https://evo", "k")) is False

    @patch("arbiter.services.evolution_service.httpx.Client")
    def test_missing_instance_skips_request(self, mock_client_class):
        assert send_text("", "5511", "Olá!") is False
        mock_client_class.assert_not_called()

    @patch("arbiter.services.evolution_service.settings")
    @patch("arbiter.services.evolution_service.httpx.Client")
    def test_missing_credentials_skips_request(self, mock_client_class, mock_settings):
        mock_settings.evolution_api_url = None
        mock_settings.evolution_api_key = None
        assert send_text("clinica", "5511", "Olá!", agent=_agent()) is False
        mock_client_class.assert_not_called()
