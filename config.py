"""
Central configuration for the 80/20 leveraged-ETF hedge backtester.
All tunable parameters live here; library code only reads them as defaults.
"""

# ──────────────────────────────────────────────
# Instruments
# ──────────────────────────────────────────────
INDEX_SYMBOL = "^TWII"       # TAIEX weighted index
ETF_SYMBOL = "00631L.TW"     # 2x leveraged Taiwan 50 ETF

LOT_SIZE = 1000              # units per tradable lot
POINT_VALUE = 50             # mini index future, currency per index point
LEVERAGE = 2                 # ETF daily tracking multiple

# ──────────────────────────────────────────────
# Data
# ──────────────────────────────────────────────
START_DATE = "2015-01-01"
END_DATE = "2025-12-31"
CACHE_DIR = "data/cache"
PRICE_DECIMALS = 2

# ──────────────────────────────────────────────
# Strategy defaults (caller-side; the engine never injects these)
# ──────────────────────────────────────────────
INITIAL_CAPITAL = 1_000_000  # TWD
TARGET_RATIO = 0.8           # 80% ETF / 20% hedge reserve
MA_PERIOD = 13               # trading days
MARGIN_PER_CONTRACT = 80_000 # exchange initial margin per mini contract
SAFETY_MULTIPLIER = 2.0      # haircut on margin when sizing the hedge
ENABLE_REBALANCE = True

# ──────────────────────────────────────────────
# Rebalancing
# ──────────────────────────────────────────────
REBALANCE_THRESHOLD = 0.01   # skip monthly trades below 1% of equity
MIN_TRADE_AMOUNT = 10_000    # holdings check: ignore diffs below this

# Allocation health bands, in percentage points of deviation from target
HEALTH_THRESHOLDS = {
    "excellent": 2.0,
    "good": 5.0,
    "warning": 10.0,
    # "danger" = everything above 10
}

# ──────────────────────────────────────────────
# Scenario projection
# ──────────────────────────────────────────────
SCENARIO_RANGE = 1500        # ± index points
SCENARIO_STEP = 100

# ──────────────────────────────────────────────
# Analytics
# ──────────────────────────────────────────────
RISK_FREE_RATE = 0.015       # Annualized
SWEEP_MA_PERIODS = [5, 10, 13, 20, 40, 60]

# ──────────────────────────────────────────────
# Output
# ──────────────────────────────────────────────
CHART_DIR = "output/charts"
REPORT_PATH = "output/report.txt"
RESULT_PATH = "output/last_backtest.json"
SETTINGS_PATH = "output/settings.json"
CHART_DPI = 300
