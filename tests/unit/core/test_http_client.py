from unittest.mock import patch

import pytest

from tierscan.shared.core import http
from tierscan.shared.core.exceptions import ConfigurationError


@pytest.mark.asyncio
async def test_init_and_close_shared_client():
    await http.close_http_client()
    await http.init_http_client()
    client = http.get_http_client()
    assert str(client.base_url).startswith("http://localhost:3000")
    assert client.headers["User-Agent"].startswith("Tierscan/")

    await http.close_http_client()
    assert http._client is None


def test_relative_backend_url_is_a_configuration_error():
    with patch("tierscan.shared.core.http.get_settings") as mock_settings:
        mock_settings.return_value.ENRICHMENT_API_URL = "enrichment:3000"
        with pytest.raises(ConfigurationError):
            http._build_client()
