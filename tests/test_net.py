from unittest.mock import MagicMock, patch

import pytest
import requests
from lrbox import net


def _response(text="ok"):
    response = MagicMock()
    response.text = text
    response.__enter__.return_value = response
    return response


@patch("lrbox.net.time.sleep")
@patch("lrbox.net.requests.request")
def test_retries_then_succeeds(mock_request, mock_sleep):
    mock_request.side_effect = [requests.ConnectionError("reset"), _response("body")]

    assert net.fetch_text("https://example.org/x", retries=2, backoff=1) == "body"
    assert mock_request.call_count == 2
    mock_sleep.assert_called_once_with(1)


@patch("lrbox.net.time.sleep")
@patch("lrbox.net.requests.request")
def test_gives_up_after_retries(mock_request, mock_sleep):
    mock_request.side_effect = requests.ConnectionError("reset")

    with pytest.raises(requests.ConnectionError):
        net.fetch_text("https://example.org/x", retries=2, backoff=1)

    assert mock_request.call_count == 3
    assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]


@patch("lrbox.net.time.sleep")
@patch("lrbox.net.requests.request")
def test_http_error_status_is_retried(mock_request, mock_sleep):
    bad = _response()
    bad.raise_for_status.side_effect = requests.HTTPError("503")
    mock_request.side_effect = [bad, _response("fine")]

    assert net.fetch_text("https://example.org/x", retries=1, backoff=0) == "fine"


@patch("lrbox.net.requests.request")
def test_streaming_request_passes_options(mock_request):
    mock_request.return_value = _response()

    with net.request_with_retries("GET", "https://example.org/big.zip", timeout=5) as response:
        assert response is mock_request.return_value

    _, kwargs = mock_request.call_args
    assert kwargs["stream"] is True
    assert kwargs["timeout"] == 5
    assert kwargs["allow_redirects"] is True
