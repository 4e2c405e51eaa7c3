import hashlib
from pathlib import Path
from typing import Union

import requests  # type: ignore[import-untyped]

from . import net
from .errors import AcquisitionFailure, IntegrityMismatch
from .i18n import get_string
from .models import IntegrityDigest
from .ui import ui

CHUNK_SIZE = 1024 * 1024


def parse_digest_manifest(body: str) -> IntegrityDigest:
    """Take the first whitespace token of a ``<digest>  <filename>`` manifest."""
    tokens = body.split()
    if not tokens:
        raise AcquisitionFailure(get_string("integrity_err_empty_manifest"))
    return IntegrityDigest(hex_value=tokens[0])


def fetch_reference_digest(url: str) -> IntegrityDigest:
    ui.info(get_string("integrity_fetch_reference").format(url=url))
    try:
        body = net.fetch_text(url)
    except requests.RequestException as e:
        raise AcquisitionFailure(
            get_string("integrity_err_fetch_reference").format(url=url, e=e)
        ) from e
    return parse_digest_manifest(body)


def compute_digest(local_path: Union[str, Path]) -> IntegrityDigest:
    sha256 = hashlib.sha256()
    with open(local_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256.update(chunk)
    return IntegrityDigest(hex_value=sha256.hexdigest())


def verify(reference: IntegrityDigest, computed: IntegrityDigest) -> None:
    if reference.algorithm != computed.algorithm or reference.hex_value != computed.hex_value:
        raise IntegrityMismatch(
            get_string("integrity_err_mismatch").format(
                expected=reference.hex_value, actual=computed.hex_value
            )
        )
    ui.info(get_string("integrity_ok").format(digest=computed.hex_value))
