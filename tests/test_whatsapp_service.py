from unittest.mock import MagicMock, Mock, patch

import httpx

from whatsapp_crm.services.whatsapp_service import WhatsAppService


def _client_returning(mock_client_class, status_code, body):
    mock_client = MagicMock()
    mock_client_class.return_value.__enter__.return_value = mock_client

    mock_response = Mock()
    mock_response.status_code = status_code
    mock_response.is_success = 200 <= status_code < 300
    mock_response.json.return_value = body
    mock_client.post.return_value = mock_response
    return mock_client


class TestSendText:
    @patch("whatsapp_crm.services.whatsapp_service.httpx.Client")
    def test_returns_provider_message_id(self, mock_client_class):
        mock_client = _client_returning(mock_client_class, 200, {"messages": [{"id": "wamid.out"}]})

        result = WhatsAppService("PHONE-1", "token", api_version="v20.0").send_text("+5511988887777", "Oi")

        assert result.ok is True
        assert result.value == "wamid.out"

        call_args = mock_client.post.call_args
        assert call_args[0][0] == "https://graph.facebook.com/v20.0/PHONE-1/messages"
        assert call_args[1]["headers"] == {"Authorization": "Bearer token"}
        assert call_args[1]["json"] == {
            "messaging_product": "whatsapp",
            "to": "+5511988887777",
            "type": "text",
            "text": {"body": "Oi"},
        }

    @patch("whatsapp_crm.services.whatsapp_service.httpx.Client")
    def test_success_without_message_id(self, mock_client_class):
        _client_returning(mock_client_class, 200, {})

        result = WhatsAppService("PHONE-1", "token").send_text("+5511988887777", "Oi")

        assert result.ok is True
        assert result.value is None

    @patch("whatsapp_crm.services.whatsapp_service.httpx.Client")
    def test_http_error(self, mock_client_class):
        _client_returning(mock_client_class, 401, {"error": {"message": "expired token"}})

        result = WhatsAppService("PHONE-1", "token").send_text("+5511988887777", "Oi")

        assert result.ok is False
        assert result.error_code == "whatsapp_http_401"
        assert result.details == {"error": {"message": "expired token"}}

    @patch("whatsapp_crm.services.whatsapp_service.httpx.Client")
    def test_transport_error(self, mock_client_class):
        mock_client_class.return_value.__enter__.side_effect = httpx.ConnectTimeout("timed out")

        result = WhatsAppService("PHONE-1", "token").send_text("+5511988887777", "Oi")

        assert result.ok is False
        assert result.error_code == "whatsapp_request_failed"

    @patch("whatsapp_crm.services.whatsapp_service.httpx.Client")
    def test_non_transport_exception_is_a_failure(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.side_effect = UnicodeEncodeError("ascii", "tøken", 1, 2, "ordinal not in range(128)")

        result = WhatsAppService("PHONE-1", "tøken").send_text("+5511988887777", "Oi")

        assert result.ok is False
        assert result.error_code == "whatsapp_request_failed"
