"""
Bank Directory Client Module

REST client for the recipient-bank list used by the transfer form. The list
is read-only reference data; when the remote source is unavailable the
client substitutes a fixed list of Nigerian banks and never raises.
"""

import httpx
import logging
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .errors import DirectoryFetchError

logger = logging.getLogger("mockbank.directory")


@dataclass(frozen=True)
class Bank:
    """A selectable recipient bank"""
    name: str
    code: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


FALLBACK_BANKS: List[Bank] = [
    Bank("Access Bank", "044"),
    Bank("Guaranty Trust Bank", "058"),
    Bank("Zenith Bank Plc", "057"),
    Bank("First Bank of Nigeria", "011"),
    Bank("United Bank for Africa", "033"),
    Bank("Kuda Microfinance Bank", "090267"),
    Bank("Opay", "999992"),
    Bank("PalmPay", "999991"),
    Bank("Moniepoint", "50515"),
]


def parse_banks(payload: Any) -> List[Bank]:
    """
    Validate a decoded JSON body as a list of {name, code} objects.

    Raises:
        DirectoryFetchError: If the body has the wrong shape
    """
    if not isinstance(payload, list):
        raise DirectoryFetchError(f"Expected a JSON array of banks, got {type(payload).__name__}")
    banks = []
    for entry in payload:
        if not isinstance(entry, dict) or not entry.get("name") or entry.get("code") is None:
            raise DirectoryFetchError(f"Malformed bank entry: {entry!r}")
        banks.append(Bank(name=str(entry["name"]), code=str(entry["code"])))
    return banks


class BankDirectoryClient:
    """REST client for the bank directory endpoint"""

    def __init__(
        self,
        url: str = "",
        timeout: float = 5.0,
        enabled: bool = True
    ):
        self.url = url
        self.timeout = timeout
        self.enabled = enabled
        self._client = httpx.Client(timeout=timeout)
        self._banks: Optional[List[Bank]] = None

    def fetch_banks(self) -> List[Bank]:
        """
        Fetch the bank list.

        Returns:
            Banks from the remote source, or FALLBACK_BANKS on any failure
        """
        if not self.enabled:
            return list(FALLBACK_BANKS)

        start = time.time()
        try:
            response = self._client.get(self.url)
            if response.status_code != 200:
                raise DirectoryFetchError(f"Bank directory returned {response.status_code}")
            try:
                payload = response.json()
            except ValueError as e:
                raise DirectoryFetchError(f"Bank directory returned malformed JSON: {e}") from e
            banks = parse_banks(payload)
        except (httpx.HTTPError, DirectoryFetchError) as e:
            logger.error(f"Error loading banks, using fallback list: {e}")
            return list(FALLBACK_BANKS)

        latency_ms = (time.time() - start) * 1000
        logger.info(f"Loaded {len(banks)} banks in {latency_ms:.1f}ms")
        return banks

    def get_banks(self, refresh: bool = False) -> List[Bank]:
        """Cached fetch; the first call (or refresh=True) hits the network"""
        if self._banks is None or refresh:
            self._banks = self.fetch_banks()
        return list(self._banks)

    def close(self):
        """Close the HTTP client"""
        self._client.close()
