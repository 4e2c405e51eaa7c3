import time
from contextlib import contextmanager
from typing import Dict, Generator, Optional

import requests  # type: ignore[import-untyped]

from . import constants as const


@contextmanager
def request_with_retries(
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = const.NET_TIMEOUT,
    retries: int = const.NET_RETRIES,
    backoff: float = const.NET_BACKOFF,
    stream: bool = True,
    allow_redirects: bool = True,
) -> Generator[requests.Response, None, None]:
    for attempt in range(retries + 1):
        try:
            response = requests.request(
                method,
                url,
                headers=headers,
                timeout=timeout,
                stream=stream,
                allow_redirects=allow_redirects,
            )
            response.raise_for_status()
        except requests.RequestException:
            if attempt >= retries:
                raise
            time.sleep(backoff * (attempt + 1))
            continue

        with response:
            yield response
        return


def fetch_text(url: str, **kwargs) -> str:
    with request_with_retries("GET", url, stream=False, **kwargs) as response:
        return response.text
