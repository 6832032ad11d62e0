"""
Value types shared by the exchange layer and the trading engine.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ResolvedCredentials:
    """
    Plaintext exchange credentials for one execution.

    Held in memory only; repr() never shows the values so the object can't
    leak through log formatting.
    """
    api_key: str = field(default="", repr=False)
    api_secret: Optional[str] = field(default=None, repr=False)
    password: Optional[str] = field(default=None, repr=False)

    def get(self, name: str) -> Optional[str]:
        return getattr(self, name, None)


def _identity_symbol(symbol: str) -> str:
    return symbol


def _no_balance_params(credentials: Optional[ResolvedCredentials], symbol: str) -> Optional[Dict[str, Any]]:
    return None


@dataclass(frozen=True)
class ExchangePlugin:
    """
    Venue description: credentials, ccxt wiring and order/balance quirks.

    Venue differences live here as data so the sizing and execution code
    never branches on exchange names.
    """
    id: str
    label: str
    ccxt_id: str
    required_credentials: Tuple[str, ...]
    optional_credentials: Tuple[str, ...] = ()
    timeout_ms: Optional[int] = None
    # Build the ccxt constructor options from resolved credentials
    client_options: Optional[Callable[[Optional[ResolvedCredentials]], Dict[str, Any]]] = None
    format_symbol: Callable[[str], str] = _identity_symbol
    get_balance_params: Callable[
        [Optional[ResolvedCredentials], str], Optional[Dict[str, Any]]
    ] = _no_balance_params
    # Round-down precision for order amounts (None = leave to the exchange)
    amount_decimals: Optional[int] = None
    # Buys always spend this currency regardless of the symbol's quote
    fixed_buy_currency: Optional[str] = None
    # Logical currency -> alternative balance keys, tried after the currency itself
    currency_aliases: Dict[str, List[str]] = field(default_factory=dict)
    # "always": market orders carry a price hint; "buy_only": only market buys do
    market_price_policy: str = "buy_only"
    slippage: Optional[float] = None
    min_order_value: Optional[float] = None  # USD; None = Settings.min_order_value_usd

    def build_client_options(self, credentials: Optional[ResolvedCredentials]) -> Dict[str, Any]:
        options: Dict[str, Any] = {"enableRateLimit": True}
        if self.timeout_ms:
            options["timeout"] = self.timeout_ms
        if self.client_options:
            options.update(self.client_options(credentials))
        return options

    def missing_credentials(self, credentials: Optional[ResolvedCredentials]) -> List[str]:
        if credentials is None:
            return list(self.required_credentials)
        return [name for name in self.required_credentials if not credentials.get(name)]


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    type: str  # "market" | "limit"
    side: str  # "buy" | "sell"
    amount: float
    price: Optional[float] = None
    params: Dict[str, Any] = field(default_factory=dict)


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class OrderResult:
    """
    Exchange response to an order. Exchange-assigned values are
    authoritative over what was requested.
    """
    id: Optional[str]
    amount: Optional[float] = None
    price: Optional[float] = None
    average: Optional[float] = None
    filled: Optional[float] = None
    status: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_ccxt(cls, order: Dict[str, Any]) -> "OrderResult":
        order_id = order.get("id")
        return cls(
            id=str(order_id) if order_id is not None else None,
            amount=_to_float(order.get("amount")),
            price=_to_float(order.get("price")),
            average=_to_float(order.get("average")),
            filled=_to_float(order.get("filled")),
            status=order.get("status"),
            raw=order,
        )
