"""Environment configuration for the festival sync service."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_SPREADSHEET_ID = '1NGseGNHv6Tth5e_yuRWzeVczQkzqXXGF4k16IsvyiTE'


@dataclass(frozen=True)
class Settings:
    """Service settings, read once per process."""
    festivals_table: str = 'festivals'
    steam_features_table: str = 'steam-features'
    sync_log_table: str = 'sync-logs'
    region_name: Optional[str] = None
    log_level: str = 'INFO'
    spreadsheet_id: str = DEFAULT_SPREADSHEET_ID
    timeout_seconds: int = 15
    cron_secret: str = ''
    rapidapi_key: str = ''
    rapidapi_host: str = 'google-search72.p.rapidapi.com'
    gemini_api_key: str = ''
    gemini_model: str = 'gemini-2.0-flash'
    ai_enrichment_version: int = 1
    revalidate_url: str = ''
    post_sync_image_limit: int = 5
    post_sync_ai_limit: int = 3

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from environment variables.

        Args:
            environ: Variables to read (default: os.environ)
        """
        env = os.environ if environ is None else environ
        return cls(
            festivals_table=env.get('FESTIVALS_TABLE', 'festivals'),
            steam_features_table=env.get('STEAM_FEATURES_TABLE', 'steam-features'),
            sync_log_table=env.get('SYNC_LOG_TABLE', 'sync-logs'),
            region_name=env.get('AWS_REGION') or None,
            log_level=env.get('LOG_LEVEL', 'INFO'),
            spreadsheet_id=env.get('SPREADSHEET_ID', DEFAULT_SPREADSHEET_ID),
            timeout_seconds=int(env.get('TIMEOUT_SECONDS', '15')),
            cron_secret=env.get('CRON_SECRET', ''),
            rapidapi_key=env.get('RAPIDAPI_KEY', ''),
            rapidapi_host=env.get('RAPIDAPI_GOOGLE_SEARCH_HOST', 'google-search72.p.rapidapi.com'),
            gemini_api_key=env.get('GEMINI_API_KEY', ''),
            gemini_model=env.get('GEMINI_MODEL', 'gemini-2.0-flash'),
            ai_enrichment_version=int(env.get('AI_ENRICHMENT_VERSION', '1')),
            revalidate_url=env.get('REVALIDATE_URL', ''),
            post_sync_image_limit=int(env.get('POST_SYNC_IMAGE_LIMIT', '5')),
            post_sync_ai_limit=int(env.get('POST_SYNC_AI_LIMIT', '3')),
        )
