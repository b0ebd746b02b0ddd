import os
import logging
from urllib.parse import urljoin
from dotenv import load_dotenv
from .utils import open_session, get_jwt_token
from typing import Any, Optional, Mapping

logger = logging.getLogger(__name__)


class CoordinatorClient:
    """HTTP client for the chain gateway fronting the VRF coordinator and wallet.

    It is the production implementation of both collaborators the raffle
    engine needs: ``request_random_words`` for the randomness gateway and
    ``transfer`` for payouts.
    """

    def __init__(self, base_fqdn: Optional[str] = None, timeout: int = 45):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("BLOCKCHAIN_BASE_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'BLOCKCHAIN_BASE_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        session_info = open_session()
        if not session_info or len(session_info) != 2:
            raise ValueError("open_session() must return (session, csrf_token)")
        self.session, self.csrf = session_info
        self.jwt = get_jwt_token(self.session)
        self.timeout = timeout

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {self.jwt}"}

    @property
    def auth_csrf_headers(self) -> Mapping[str, str]:
        return {**self.auth_headers, "X-CSRFTOKEN": self.csrf}

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers or self.auth_headers,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def request_random_words(
        self,
        *,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        """Ask the coordinator for ``num_words`` random words.

        Returns the request id the coordinator will echo back when it
        delivers the words.
        """
        response = self._request(
            "POST",
            "/api/v1/vrf/requests",
            headers=self.auth_csrf_headers,
            json={
                "key_hash": key_hash,
                # uint256 values travel as strings
                "subscription_id": str(subscription_id),
                "request_confirmations": request_confirmations,
                "callback_gas_limit": callback_gas_limit,
                "num_words": num_words,
            },
        )
        if not isinstance(response, dict) or "request_id" not in response:
            raise RuntimeError(f"Unexpected VRF request response: {response!r}")
        request_id = int(response["request_id"])
        logger.debug(f"Coordinator accepted randomness request {request_id}")
        return request_id

    def transfer(self, recipient: str, amount: int) -> dict:
        """Send ``amount`` wei to ``recipient`` from the raffle wallet."""
        return self._request(
            "POST",
            "/api/v1/wallet/transfer",
            headers=self.auth_csrf_headers,
            json={"recipient": recipient, "amount": str(amount)},
        )
