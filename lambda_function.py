"""AWS Lambda handler for the festival sync service."""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from api.routes import FestivalApi, Request, describe_request, error_response, json_response
from enrichment.ai_lookup import AILookupStrategy
from enrichment.image_search import ImageSearchStrategy
from enrichment.page_scraper import PageScrapeStrategy
from enrichment.runner import EnrichmentRunner
from enrichment.steam_page import SteamPageStrategy
from processor.errors import SyncInProgressError
from settings import Settings
from sheets.google_sheets import GoogleSheetsClient
from storage.dynamodb_manager import DynamoDBManager
from storage.queries import FestivalQueries
from sync.orchestrator import SyncOrchestrator
from sync.pipeline import FrontendRevalidator, PostSyncPipeline

logger = logging.getLogger(__name__)

# LogRecord attributes that are not caller-supplied extras.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class AppContext:
    """Components shared by every invocation of a warm container."""
    settings: Settings
    store: DynamoDBManager
    queries: FestivalQueries
    orchestrator: SyncOrchestrator
    runner: EnrichmentRunner
    page_strategy: PageScrapeStrategy
    steam_strategy: SteamPageStrategy
    image_strategy: ImageSearchStrategy
    ai_strategy: AILookupStrategy
    pipeline: PostSyncPipeline

    def run_pipeline(self) -> Dict[str, Any]:
        return self.pipeline.run(
            image_limit=self.settings.post_sync_image_limit,
            ai_limit=self.settings.post_sync_ai_limit
        )


def build_app_context(settings: Settings) -> AppContext:
    """Wire storage, source, strategies and pipeline from settings."""
    store = DynamoDBManager(
        festivals_table=settings.festivals_table,
        steam_features_table=settings.steam_features_table,
        sync_log_table=settings.sync_log_table,
        region_name=settings.region_name
    )
    source = GoogleSheetsClient(settings.spreadsheet_id, timeout=settings.timeout_seconds)
    orchestrator = SyncOrchestrator(store, source)
    runner = EnrichmentRunner(store)

    image_strategy = ImageSearchStrategy(
        api_key=settings.rapidapi_key,
        host=settings.rapidapi_host,
        timeout=settings.timeout_seconds
    )
    ai_strategy = AILookupStrategy(
        api_key=settings.gemini_api_key,
        model_name=settings.gemini_model,
        version=settings.ai_enrichment_version,
        timeout=settings.timeout_seconds
    )
    revalidator = FrontendRevalidator(settings.revalidate_url, timeout=settings.timeout_seconds) \
        if settings.revalidate_url else None

    return AppContext(
        settings=settings,
        store=store,
        queries=FestivalQueries(store),
        orchestrator=orchestrator,
        runner=runner,
        page_strategy=PageScrapeStrategy(timeout=settings.timeout_seconds),
        steam_strategy=SteamPageStrategy(timeout=settings.timeout_seconds),
        image_strategy=image_strategy,
        ai_strategy=ai_strategy,
        pipeline=PostSyncPipeline(orchestrator, runner, image_strategy, ai_strategy, revalidator)
    )


_app: Optional[AppContext] = None


def get_app() -> AppContext:
    """Build the application context once per container."""
    global _app
    if _app is None:
        _app = build_app_context(Settings.from_env())
    return _app


def is_scheduled_event(event: Dict[str, Any]) -> bool:
    return event.get('source') == 'aws.events'


def handle_event(event: Dict[str, Any], app: AppContext) -> Dict[str, Any]:
    """
    Dispatch a scheduled event or an API Gateway request.

    Scheduled events come from EventBridge and run the post-sync pipeline
    without a bearer credential; invoking the function is IAM controlled.
    """
    if is_scheduled_event(event):
        try:
            result = app.run_pipeline()
        except SyncInProgressError as e:
            logger.warning(f"Scheduled sync skipped: {e}")
            return error_response(409, str(e))
        return json_response(200, {'success': True, 'data': result})

    return FestivalApi(app).dispatch(Request.from_event(event))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the festival sync service.

    Args:
        event: EventBridge event or API Gateway proxy event
        context: Lambda context object

    Returns:
        Response dict with statusCode, headers and JSON body
    """
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    start_time = time.time()
    scheduled = is_scheduled_event(event)
    logger.info(
        "Lambda execution started",
        extra={'scheduled': scheduled} if scheduled else describe_request(event)
    )

    try:
        response = handle_event(event, get_app())

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed",
            extra={
                'status_code': response['statusCode'],
                'duration_seconds': round(duration, 2)
            }
        )
        return response

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'headers': {'Content-Type': 'application/json'},
            'body': json.dumps({
                'success': False,
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }
