"""Tinkoff Invest API snapshot source.

Fetches accounts, portfolio positions and the instrument catalog from the
Tinkoff Invest REST gateway. Every call is a JSON POST to
``{base}/rest/tinkoff.public.invest.api.contract.v1.<Service>/<Method>``
authenticated with a Bearer token.

Wire money values (``MoneyValue`` / ``Quotation``) carry ``units`` (int64,
serialized as a string) and ``nano`` (int32, same sign as units); they are
converted to FixedPointMoney with a non-negative fractional part.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from rebalancer.data.base import SnapshotData, SnapshotSource
from rebalancer.portfolio.money import FRAC_SCALE, FixedPointMoney, Quantity
from rebalancer.portfolio.snapshot import InstrumentMeta, Position
from rebalancer.utils.exceptions import DataProviderError, MoneyError

logger = logging.getLogger(__name__)

CONTRACT_PREFIX = "tinkoff.public.invest.api.contract.v1"


def quotation_to_money(value: Dict[str, Any], currency: str) -> FixedPointMoney:
    """Convert a ``{units, nano}`` wire value to FixedPointMoney.

    Raises:
        DataProviderError: If the value is malformed or out of range
    """
    try:
        units = int(value.get("units", 0))
        nano = int(value.get("nano", 0))
    except (AttributeError, TypeError, ValueError) as e:
        raise DataProviderError(f"Invalid money value: {value!r}") from e

    if abs(nano) >= FRAC_SCALE:
        raise DataProviderError(f"nano out of range in money value: {value!r}")

    whole, frac = divmod(units * FRAC_SCALE + nano, FRAC_SCALE)
    try:
        return FixedPointMoney(currency=currency.lower(), whole=whole, frac=frac)
    except MoneyError as e:
        raise DataProviderError(f"Money value out of range: {value!r}") from e


def quotation_to_lots(value: Dict[str, Any]) -> Quantity:
    """Convert a ``quantityLots`` quotation to a whole lot count.

    Fractional lots are not modeled; a non-zero nano part is rejected.
    """
    try:
        units = int(value.get("units", 0))
        nano = int(value.get("nano", 0))
    except (AttributeError, TypeError, ValueError) as e:
        raise DataProviderError(f"Invalid lot quantity: {value!r}") from e

    if nano != 0:
        raise DataProviderError(f"Fractional lot quantity not supported: {value!r}")
    return Quantity(units)


class TinkoffSnapshotSource(SnapshotSource):
    """Snapshot source for the Tinkoff Invest API.

    Example:
        >>> creds = load_tinkoff_credentials()
        >>> source = TinkoffSnapshotSource(creds["token"], sandbox=True)
        >>> snapshot = source.fetch()
    """

    API_URL = "https://invest-public-api.tinkoff.ru"
    SANDBOX_API_URL = "https://sandbox-invest-public-api.tinkoff.ru"

    def __init__(
        self,
        token: str,
        account_id: Optional[str] = None,
        sandbox: bool = False,
        currency: str = "rub",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize Tinkoff source.

        Args:
            token: API token (sent as a Bearer token)
            account_id: Account to read; first open account when None
            sandbox: Use the sandbox environment and sandbox services
            currency: Settlement currency for portfolio valuation
            timeout: Request timeout in seconds
            session: Optional requests session (for connection reuse)
        """
        if not token:
            raise DataProviderError("Tinkoff API token is required")

        self.account_id = account_id
        self.sandbox = sandbox
        self.currency = currency.lower()
        self.timeout = timeout
        self.base_url = self.SANDBOX_API_URL if sandbox else self.API_URL

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

        logger.debug(
            "Tinkoff source initialized (mode: %s)", "sandbox" if sandbox else "live"
        )

    def _call(self, service: str, method: str, payload: Optional[Dict] = None) -> Dict:
        url = f"{self.base_url}/rest/{CONTRACT_PREFIX}.{service}/{method}"
        try:
            response = self.session.post(url, json=payload or {}, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise DataProviderError(
                f"Tinkoff API call {service}/{method} failed: {e}"
            ) from e
        except ValueError as e:
            raise DataProviderError(
                f"Invalid JSON from Tinkoff API {service}/{method}: {e}"
            ) from e

    def get_accounts(self) -> List[Dict[str, Any]]:
        """List brokerage accounts.

        Returns:
            Account dicts with keys such as ``id``, ``name`` and ``status``
        """
        if self.sandbox:
            data = self._call("SandboxService", "GetSandboxAccounts")
        else:
            data = self._call("UsersService", "GetAccounts")
        return data.get("accounts", [])

    def resolve_account_id(self) -> str:
        """Return the configured account, or the first open one.

        Raises:
            DataProviderError: If no open account exists
        """
        if self.account_id:
            return self.account_id

        for account in self.get_accounts():
            if account.get("status") == "ACCOUNT_STATUS_OPEN":
                logger.info("Using account %s", account.get("id"))
                return str(account["id"])

        raise DataProviderError("No open brokerage account found")

    def get_positions(self, account_id: str) -> List[Position]:
        """Fetch held positions for an account."""
        payload = {"accountId": account_id, "currency": self.currency.upper()}
        if self.sandbox:
            data = self._call("SandboxService", "GetSandboxPortfolio", payload)
        else:
            data = self._call("OperationsService", "GetPortfolio", payload)

        positions = []
        for entry in data.get("positions", []):
            figi = entry.get("figi")
            price = entry.get("currentPrice")
            if not figi or price is None:
                logger.warning("Skipping position without figi or price: %s", entry)
                continue

            lots = entry.get("quantityLots") or {"units": "0", "nano": 0}
            positions.append(
                Position(
                    instrument_id=str(figi),
                    quantity=quotation_to_lots(lots),
                    unit_price=quotation_to_money(
                        price, price.get("currency", self.currency)
                    ),
                )
            )

        logger.info("Fetched %d positions for account %s", len(positions), account_id)
        return positions

    def get_instruments(self) -> List[InstrumentMeta]:
        """Fetch the share and ETF catalog."""
        instruments = []
        payload = {"instrumentStatus": "INSTRUMENT_STATUS_BASE"}

        for method in ("Shares", "Etfs"):
            data = self._call("InstrumentsService", method, payload)
            for entry in data.get("instruments", []):
                try:
                    instruments.append(
                        InstrumentMeta(
                            id=str(entry["figi"]),
                            ticker=str(entry["ticker"]),
                            lot_size=int(entry.get("lot", 1)),
                        )
                    )
                except (KeyError, TypeError, ValueError) as e:
                    raise DataProviderError(
                        f"Invalid instrument in {method} response: {entry!r}"
                    ) from e

        logger.info("Fetched %d instruments", len(instruments))
        return instruments

    def fetch(self) -> SnapshotData:
        account_id = self.resolve_account_id()
        return SnapshotData(
            positions=self.get_positions(account_id),
            instruments=self.get_instruments(),
        )
