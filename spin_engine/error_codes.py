class ErrorCodes:
    # Generic
    VALIDATION_ERROR = "BE_GEN_001"
    NOT_FOUND = "BE_GEN_002"
    GAME_LOGIC_ERROR = "BE_GEN_003"

    # Wallet
    INSUFFICIENT_FUNDS = "BE_WAL_001"
    BANKRUPTCY = "BE_WAL_002"

    # Game configuration
    INVALID_CONFIGURATION = "BE_CFG_001"
