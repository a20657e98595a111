# Currency and bank used for sample Laos transactions
DEFAULT_CURRENCY = "LAK"
DEFAULT_BANK_CODE = "JDB"

# Account ids the example producer publishes for
SAMPLE_ACCOUNT_IDS = ("00120010010106019", "70120010010106020")

# Seconds to wait between accounts in the example producer
SAMPLE_PUBLISH_DELAY = 0.5

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
