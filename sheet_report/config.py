import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from sheet_report.errors import ConfigError

# Load .env from repo root before Settings reads os.environ
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

DEFAULT_INPUT_RANGE: str = "Sheet1!E5:K9"
DEFAULT_OUTPUT_ANCHOR: str = "Sheet1!E15:K"
DEFAULT_CREDENTIALS_PATH: str = "service-account.json"
DEFAULT_PORT: int = 3000


@dataclass(frozen=True)
class Settings:
    spreadsheet_id: str
    credentials_path: str = DEFAULT_CREDENTIALS_PATH
    input_range: str = DEFAULT_INPUT_RANGE
    output_anchor: str = DEFAULT_OUTPUT_ANCHOR
    value_input_option: str = "USER_ENTERED"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from the process environment (or an explicit mapping)."""
        env = os.environ if environ is None else environ

        spreadsheet_id = env.get("GOOGLE_SHEET_ID", "").strip()
        if not spreadsheet_id:
            raise ConfigError("GOOGLE_SHEET_ID environment variable is not set")

        port_raw = env.get("PORT", str(DEFAULT_PORT))
        try:
            port = int(port_raw)
        except ValueError as exc:
            raise ConfigError(f"PORT must be an integer, got {port_raw!r}") from exc

        return cls(
            spreadsheet_id=spreadsheet_id,
            credentials_path=env.get("GOOGLE_APPLICATION_CREDENTIALS", DEFAULT_CREDENTIALS_PATH),
            input_range=env.get("SHEET_INPUT_RANGE", DEFAULT_INPUT_RANGE),
            output_anchor=env.get("SHEET_OUTPUT_ANCHOR", DEFAULT_OUTPUT_ANCHOR),
            value_input_option=env.get("SHEET_VALUE_INPUT_OPTION", "USER_ENTERED"),
            host=env.get("HOST", "0.0.0.0"),
            port=port,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
