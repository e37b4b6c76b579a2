"""Application constants."""

USER_AGENT = "fuelkl/1.0 (+price-updater)"
RAPIDAPI_HOST = "daily-petrol-diesel-lpg-cng-fuel-prices-in-india.p.rapidapi.com"
DEFAULT_SOURCE_TEMPLATE = (
    "https://daily-petrol-diesel-lpg-cng-fuel-prices-in-india.p.rapidapi.com"
    "/v1/fuel-prices/history/india/kerala/{district}"
)
DISTRICT_PLACEHOLDER = "{district}"
CREDENTIAL_ENV = "RAPIDAPI_KEY"
SOURCE_URL_ENV = "SOURCE_URL"
DEFAULT_OUTPUT_FILENAME = "prices.json"
SAMPLE_CHARS = 800

EXIT_SUCCESS = 0
EXIT_MISSING_CREDENTIAL = 1
EXIT_NO_DATA = 2
EXIT_CACHE_FAILURE = 3

JSON_LOG_FIELDS = (
    "timestamp",
    "level",
    "run_id",
    "stage",
    "district",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "error_code",
    "message",
)
