"""Seed profiles for the quote simulator."""

# price: starting last price; sigma: annualized volatility; mu: annualized
# drift; spread_bps: quoted bid/ask spread in basis points of price.
TICKER_PROFILES: dict[str, dict[str, float]] = {
    "AAPL": {"price": 190.00, "sigma": 0.22, "mu": 0.05, "spread_bps": 1.0},
    "GOOGL": {"price": 175.00, "sigma": 0.25, "mu": 0.05, "spread_bps": 1.5},
    "MSFT": {"price": 420.00, "sigma": 0.20, "mu": 0.05, "spread_bps": 1.0},
    "AMZN": {"price": 185.00, "sigma": 0.28, "mu": 0.05, "spread_bps": 1.5},
    "TSLA": {"price": 250.00, "sigma": 0.50, "mu": 0.03, "spread_bps": 2.0},
    "NVDA": {"price": 800.00, "sigma": 0.40, "mu": 0.08, "spread_bps": 1.0},
    "META": {"price": 500.00, "sigma": 0.30, "mu": 0.05, "spread_bps": 1.5},
    "JPM": {"price": 195.00, "sigma": 0.18, "mu": 0.04, "spread_bps": 2.0},
    "V": {"price": 280.00, "sigma": 0.17, "mu": 0.04, "spread_bps": 2.0},
    "SPY": {"price": 520.00, "sigma": 0.15, "mu": 0.06, "spread_bps": 0.5},
}

# Profile for symbols not listed above; price is drawn at random.
DEFAULT_PROFILE: dict[str, float] = {"sigma": 0.25, "mu": 0.05, "spread_bps": 5.0}
RANDOM_PRICE_RANGE = (50.0, 300.0)

# Sector groups drive the correlation matrix
SECTORS: dict[str, set[str]] = {
    "tech": {"AAPL", "GOOGL", "MSFT", "AMZN", "META", "NVDA"},
    "finance": {"JPM", "V"},
}

INTRA_SECTOR_CORR: dict[str, float] = {"tech": 0.6, "finance": 0.5}
CROSS_SECTOR_CORR = 0.3
IDIOSYNCRATIC = {"TSLA"}  # Always CROSS_SECTOR_CORR, even within its sector
