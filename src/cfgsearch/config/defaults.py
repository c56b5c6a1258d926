"""Built-in parameter registry, baseline and correlated sets.

These mirror the backtester's filter form: five sections, one rule per
parameter. A search config may override any of them.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple


# name -> rule fields (section, type, min, max, step)
DEFAULT_PARAMETER_RULES: Dict[str, Dict[str, Any]] = {
    # basic
    "minMcap": {"section": "basic", "type": "int", "min": 0, "max": 10000, "step": 1000},
    "maxMcap": {"section": "basic", "type": "int", "min": 10000, "max": 60000, "step": 1000},
    # tokenDetails
    "minDeployerAge": {"section": "tokenDetails", "type": "int", "min": 0, "max": 1440, "step": 5},
    "minTokenAge": {"section": "tokenDetails", "type": "int", "min": 0, "max": 99999, "step": 15},
    "maxTokenAge": {"section": "tokenDetails", "type": "int", "min": 0, "max": 99999, "step": 15},
    "minAgScore": {"section": "tokenDetails", "type": "int", "min": 0, "max": 10, "step": 1},
    # wallets
    "minHolders": {"section": "wallets", "type": "int", "min": 1, "max": 5, "step": 1},
    "maxHolders": {"section": "wallets", "type": "int", "min": 1, "max": 50, "step": 5},
    "minUniqueWallets": {"section": "wallets", "type": "int", "min": 1, "max": 3, "step": 1},
    "maxUniqueWallets": {"section": "wallets", "type": "int", "min": 1, "max": 8, "step": 1},
    "minKycWallets": {"section": "wallets", "type": "int", "min": 0, "max": 3, "step": 1},
    "maxKycWallets": {"section": "wallets", "type": "int", "min": 1, "max": 8, "step": 1},
    # risk
    "minBundledPercent": {"section": "risk", "type": "float", "min": 0, "max": 50, "step": 1},
    "maxBundledPercent": {"section": "risk", "type": "float", "min": 0, "max": 100, "step": 5},
    "minDeployerBalance": {"section": "risk", "type": "float", "min": 0, "max": 10, "step": 0.5},
    "minBuyRatio": {"section": "risk", "type": "float", "min": 0, "max": 50, "step": 10},
    "maxBuyRatio": {"section": "risk", "type": "float", "min": 50, "max": 100, "step": 5},
    "minVolMcapPercent": {"section": "risk", "type": "float", "min": 0, "max": 100, "step": 10},
    "maxVolMcapPercent": {"section": "risk", "type": "float", "min": 33, "max": 300, "step": 20},
    "maxDrainedPercent": {"section": "risk", "type": "float", "min": 0, "max": 100, "step": 5},
    "maxDrainedCount": {"section": "risk", "type": "int", "min": 0, "max": 11, "step": 1},
    "needsDescription": {"section": "risk", "type": "bool"},
    "needsFreshDeployer": {"section": "risk", "type": "bool"},
    # advanced
    "minTtc": {"section": "advanced", "type": "int", "min": 0, "max": 3600, "step": 5},
    "maxTtc": {"section": "advanced", "type": "int", "min": 10, "max": 3600, "step": 10},
    "maxLiquidityPct": {"section": "advanced", "type": "int", "min": 10, "max": 100, "step": 10},
    "minWinPred": {"section": "advanced", "type": "int", "min": 0, "max": 70, "step": 5},
}

DEFAULT_MIN_MAX_PAIRS: List[Tuple[str, str]] = [
    ("minMcap", "maxMcap"),
    ("minTokenAge", "maxTokenAge"),
    ("minHolders", "maxHolders"),
    ("minUniqueWallets", "maxUniqueWallets"),
    ("minKycWallets", "maxKycWallets"),
    ("minBundledPercent", "maxBundledPercent"),
    ("minBuyRatio", "maxBuyRatio"),
    ("minVolMcapPercent", "maxVolMcapPercent"),
    ("minTtc", "maxTtc"),
]

# Permissive starting point used when a session has no initial config.
DEFAULT_BASELINE: Dict[str, Dict[str, Any]] = {
    "basic": {"maxMcap": 50000},
    "tokenDetails": {"minAgScore": 3},
    "wallets": {"minUniqueWallets": 1, "maxUniqueWallets": 8},
    "risk": {"minBundledPercent": 0, "maxBuyRatio": 100},
    "advanced": {"maxLiquidityPct": 100},
}

# Jointly-varied parameter sets the single-parameter sweep cannot reach.
DEFAULT_CORRELATED_SETS: List[Dict[str, Any]] = [
    {"minMcap": 5000, "maxMcap": 20000},
    {"minMcap": 10000, "maxMcap": 35000},
    {"minMcap": 10000, "maxMcap": 50000},
    {"minUniqueWallets": 1, "maxUniqueWallets": 3, "minKycWallets": 0, "maxKycWallets": 2},
    {"minUniqueWallets": 2, "maxUniqueWallets": 5, "minKycWallets": 1, "maxKycWallets": 4},
    {"minUniqueWallets": 3, "maxUniqueWallets": 7, "minKycWallets": 2, "maxKycWallets": 6},
    {"minBundledPercent": 0, "maxBundledPercent": 10},
    {"minBundledPercent": 0, "maxBundledPercent": 25},
    {"minBundledPercent": 5, "maxBundledPercent": 50},
]

# Named starting points for the multiple-starts phase, laid over the
# session's starting configuration.
DEFAULT_PRESETS: Dict[str, Dict[str, Any]] = {
    "conservative": {
        "minMcap": 10000,
        "maxMcap": 50000,
        "minAgScore": 4,
        "minDeployerAge": 60,
        "minUniqueWallets": 2,
        "maxUniqueWallets": 5,
        "minKycWallets": 2,
        "minBundledPercent": 0,
        "maxBundledPercent": 25,
        "minTtc": 30,
        "maxLiquidityPct": 70,
    },
    "aggressive": {
        "minMcap": 1000,
        "maxMcap": 15000,
        "minAgScore": 2,
        "minUniqueWallets": 1,
        "maxUniqueWallets": 8,
        "maxBundledPercent": 80,
        "maxVolMcapPercent": 193,
        "minTtc": 5,
        "maxLiquidityPct": 90,
    },
    "oldishDeployer": {
        "minDeployerAge": 1200,
        "minAgScore": 6,
        "maxBundledPercent": 5,
        "minBuyRatio": 20,
        "maxVolMcapPercent": 33,
        "maxDrainedCount": 6,
        "maxTtc": 400,
    },
    "highTtc": {"minTtc": 900},
    "kycRequired": {"minKycWallets": 3},
    "zeroDrain": {"maxDrainedCount": 0},
    "highAgScore": {"minAgScore": 8},
}
