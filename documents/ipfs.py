"""
Thin client for an IPFS node's HTTP API (Kubo-compatible) and gateway.
"""
import requests
import logging
from typing import Optional
from django.conf import settings

logger = logging.getLogger(__name__)


class IPFSError(Exception):
    pass


class IPFSClient:
    """
    Adds content through ``/api/v0/add`` and reads it back through the gateway
    """

    def __init__(self, api_url: Optional[str] = None, gateway_url: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.api_url = (api_url or settings.IPFS_API_URL).rstrip('/')
        self.gateway_url = (gateway_url or settings.IPFS_GATEWAY_URL).rstrip('/')
        self.timeout = timeout or settings.IPFS_TIMEOUT
        self.session = session or requests.Session()

    def add(self, content: bytes, filename: str = 'file.bin') -> str:
        """Pin bytes on the node and return their CID"""
        if isinstance(content, str):
            content = content.encode('utf-8')
        try:
            response = self.session.post(
                f"{self.api_url}/api/v0/add",
                files={'file': (filename, content)},
                timeout=self.timeout,
            )
            response.raise_for_status()
            cid = response.json().get('Hash')
        except requests.exceptions.RequestException as e:
            logger.error(f"IPFS add failed: {e}")
            raise IPFSError(f"IPFS upload failed: {e}")
        except ValueError:
            raise IPFSError("IPFS node returned an invalid response")

        if not cid:
            raise IPFSError("IPFS node returned no CID")
        logger.info(f"Added {filename} to IPFS as {cid} ({len(content)} bytes)")
        return cid

    def cat(self, cid: str) -> bytes:
        """Fetch raw bytes for a CID from the gateway"""
        try:
            response = self.session.get(f"{self.gateway_url}/ipfs/{cid}", timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"IPFS fetch failed for {cid}: {e}")
            raise IPFSError(f"Could not fetch {cid}: {e}")
        return response.content


def get_ipfs_client():
    return IPFSClient()
