"""HTTP routing for API Gateway proxy events."""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple
from urllib.parse import unquote

from api.auth import get_header, is_authorized
from enrichment.selector import DEFAULT_API_LIMIT, SelectionCriteria
from processor.errors import InvalidQueryError, SyncInProgressError, UnsupportedYearError
from processor.models import Partition, utc_now_iso
from storage.queries import DEFAULT_HISTORY_LIMIT, DEFAULT_PAGE_SIZE, DEFAULT_UPCOMING_DAYS, to_document

logger = logging.getLogger(__name__)

JSON_HEADERS = {'Content-Type': 'application/json'}


@dataclass
class Request:
    """Normalized view of a REST (v1) or HTTP API (v2) proxy event."""
    method: str
    path: str
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> 'Request':
        http = (event.get('requestContext') or {}).get('http') or {}
        method = event.get('httpMethod') or http.get('method') or 'GET'
        path = event.get('path') or event.get('rawPath') or http.get('path') or '/'
        if len(path) > 1:
            path = path.rstrip('/')
        return cls(
            method=method.upper(),
            path=path,
            query=dict(event.get('queryStringParameters') or {}),
            headers=dict(event.get('headers') or {})
        )

    def query_int(self, name: str, default: int) -> int:
        """
        Non-negative integer query parameter.

        Missing, empty or zero values use the default; negative values raise
        InvalidQueryError.
        """
        raw = self.query.get(name)
        if raw in (None, ''):
            return default
        try:
            value = int(raw)
        except ValueError:
            raise InvalidQueryError(f"Query parameter '{name}' must be an integer") from None
        if value < 0:
            raise InvalidQueryError(f"Query parameter '{name}' must not be negative")
        return value or default

    def query_bool(self, name: str) -> Optional[bool]:
        raw = self.query.get(name)
        if raw in (None, ''):
            return None
        lowered = raw.lower()
        if lowered not in ('true', 'false'):
            raise InvalidQueryError(f"Query parameter '{name}' must be 'true' or 'false'")
        return lowered == 'true'


def json_response(status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': dict(JSON_HEADERS),
        'body': json.dumps(payload, default=str),
    }


def error_response(status_code: int, message: str) -> Dict[str, Any]:
    return json_response(status_code, {'success': False, 'error': message})


@dataclass
class Route:
    method: str
    pattern: Pattern
    handler: Callable[..., Dict[str, Any]]
    protected: bool = False


class Router:
    """Maps (method, path template) pairs to handler callables."""

    def __init__(self):
        self.routes: List[Route] = []

    def add(self, method: str, template: str, handler: Callable, protected: bool = False) -> None:
        # '{name}' segments capture one path segment.
        pattern = re.sub(r'\{(\w+)\}', r'(?P<\1>[^/]+)', template)
        self.routes.append(Route(method, re.compile(f'^{pattern}$'), handler, protected))

    def match(self, method: str, path: str) -> Tuple[Optional[Route], Dict[str, str], bool]:
        """
        Find the route for a request.

        Returns:
            Tuple of (route or None, path parameters, whether the path exists
            under another method)
        """
        path_known = False
        for route in self.routes:
            match = route.pattern.match(path)
            if not match:
                continue
            if route.method == method:
                params = {k: unquote(v) for k, v in match.groupdict().items()}
                return route, params, True
            path_known = True
        return None, {}, path_known


class FestivalApi:
    """Route handlers bound to an application context."""

    def __init__(self, app):
        self.app = app
        self.router = Router()
        self._register_routes()

    def _register_routes(self) -> None:
        add = self.router.add
        add('GET', '/api/health', self.health)

        # Fixed festival paths must precede '/api/festivals/{festival_id}'.
        add('GET', '/api/festivals', self.list_festivals)
        add('GET', '/api/festivals/stats', self.festival_stats)
        add('GET', '/api/festivals/types', self.festival_types)
        add('GET', '/api/festivals/open', self.open_submissions)
        add('GET', '/api/festivals/upcoming', self.upcoming_deadlines)
        add('GET', '/api/festivals/tba', self.tba_festivals)
        add('GET', '/api/festivals/slug/{slug}', self.festival_by_slug)
        add('GET', '/api/festivals/{festival_id}', self.festival_by_id)

        add('GET', '/api/steam-features', self.steam_features)
        add('GET', '/api/steam-features/stats', self.steam_feature_stats)
        add('GET', '/api/steam-features/featured', self.featured_festivals)
        add('GET', '/api/steam-features/{name}', self.steam_feature_by_name)

        add('POST', '/api/sync', self.trigger_sync, protected=True)
        add('GET', '/api/sync/history', self.sync_history)
        add('GET', '/api/sync/last', self.last_sync)
        add('GET', '/api/cron', self.run_cron, protected=True)

        add('GET', '/api/enrich/stats', self.enrichment_stats)
        add('POST', '/api/enrich', self.enrich_pages, protected=True)
        add('POST', '/api/enrich/steam', self.enrich_steam_pages, protected=True)
        add('POST', '/api/enrich/google-images', self.enrich_images, protected=True)
        add('POST', '/api/enrich/ai', self.enrich_ai, protected=True)

    def dispatch(self, request: Request) -> Dict[str, Any]:
        """
        Route a request and convert known errors to HTTP status codes.

        Unexpected exceptions propagate to the Lambda handler.
        """
        route, params, path_known = self.router.match(request.method, request.path)
        if route is None:
            if path_known:
                return error_response(405, f"Method {request.method} not allowed on {request.path}")
            return error_response(404, f"Route not found: {request.method} {request.path}")

        if route.protected and not is_authorized(request.headers, self.app.settings.cron_secret):
            logger.warning(
                "Unauthorized request rejected",
                extra={'method': request.method, 'path': request.path}
            )
            return error_response(401, 'Unauthorized')

        request.params = params
        try:
            return route.handler(request)
        except (InvalidQueryError, UnsupportedYearError) as e:
            return error_response(400, str(e))
        except SyncInProgressError as e:
            return error_response(409, str(e))

    # Health

    def health(self, request: Request) -> Dict[str, Any]:
        return json_response(200, {
            'success': True,
            'status': 'ok',
            'timestamp': utc_now_iso(),
        })

    # Festivals

    def list_festivals(self, request: Request) -> Dict[str, Any]:
        partition = request.query.get('partition') or None
        if partition and partition not in {p.value for p in Partition}:
            raise InvalidQueryError(f"Unknown partition '{partition}'")

        result = self.app.queries.list_festivals(
            partition=partition,
            festival_type=request.query.get('type') or None,
            submission_open=request.query_bool('submissionOpen'),
            search=request.query.get('search') or None,
            sort_by=request.query.get('sortBy') or 'name',
            sort_order=request.query.get('sortOrder') or 'asc',
            page=request.query_int('page', 1),
            limit=request.query_int('limit', DEFAULT_PAGE_SIZE)
        )
        return json_response(200, {
            'success': True,
            'data': [to_document(f) for f in result['data']],
            'pagination': result['pagination'],
        })

    def festival_stats(self, request: Request) -> Dict[str, Any]:
        return json_response(200, {'success': True, 'data': self.app.queries.festival_stats()})

    def festival_types(self, request: Request) -> Dict[str, Any]:
        return json_response(200, {'success': True, 'data': self.app.queries.festival_types()})

    def open_submissions(self, request: Request) -> Dict[str, Any]:
        return self._list_response(self.app.queries.open_submissions())

    def upcoming_deadlines(self, request: Request) -> Dict[str, Any]:
        result = self.app.queries.upcoming_deadlines(
            days=request.query_int('days', DEFAULT_UPCOMING_DAYS)
        )
        return json_response(200, {
            'success': True,
            'data': [to_document(f) for f in result['data']],
            'count': len(result['data']),
            'period': result['period'],
        })

    def tba_festivals(self, request: Request) -> Dict[str, Any]:
        return self._list_response(self.app.queries.tba_festivals())

    def festival_by_slug(self, request: Request) -> Dict[str, Any]:
        festival = self.app.queries.get_by_slug(request.params['slug'])
        if festival is None:
            return error_response(404, 'Festival not found')
        return json_response(200, {'success': True, 'data': to_document(festival)})

    def festival_by_id(self, request: Request) -> Dict[str, Any]:
        festival = self.app.queries.get_by_id(request.params['festival_id'])
        if festival is None:
            return error_response(404, 'Festival not found')
        return json_response(200, {'success': True, 'data': to_document(festival)})

    # Steam features

    def steam_features(self, request: Request) -> Dict[str, Any]:
        return self._list_response(self.app.queries.steam_features())

    def steam_feature_stats(self, request: Request) -> Dict[str, Any]:
        return json_response(200, {'success': True, 'data': self.app.queries.steam_feature_stats()})

    def featured_festivals(self, request: Request) -> Dict[str, Any]:
        year = request.query.get('year') or '2023'
        features = self.app.queries.featured_festivals(year)
        return json_response(200, {
            'success': True,
            'data': [to_document(f) for f in features],
            'count': len(features),
            'year': int(year),
        })

    def steam_feature_by_name(self, request: Request) -> Dict[str, Any]:
        feature = self.app.queries.steam_feature_by_name(request.params['name'])
        if feature is None:
            return error_response(404, 'Steam feature record not found for this festival')
        return json_response(200, {'success': True, 'data': to_document(feature)})

    # Sync

    def trigger_sync(self, request: Request) -> Dict[str, Any]:
        report = self.app.orchestrator.run()
        return json_response(200, {
            'success': not report.errors,
            'message': 'Data synchronized successfully' if not report.errors
            else 'Data synchronized with some errors',
            'data': report.to_dict(),
        })

    def sync_history(self, request: Request) -> Dict[str, Any]:
        history = self.app.queries.sync_history(
            limit=request.query_int('limit', DEFAULT_HISTORY_LIMIT)
        )
        return json_response(200, {'success': True, 'data': [to_document(e) for e in history]})

    def last_sync(self, request: Request) -> Dict[str, Any]:
        entry = self.app.queries.last_sync()
        if entry is None:
            return error_response(404, 'No sync history found. Please run a sync first.')
        return json_response(200, {'success': True, 'data': to_document(entry)})

    def run_cron(self, request: Request) -> Dict[str, Any]:
        result = self.app.run_pipeline()
        return json_response(200, {'success': True, 'data': result})

    # Enrichment

    def enrichment_stats(self, request: Request) -> Dict[str, Any]:
        return json_response(200, {'success': True, 'data': self.app.queries.enrichment_stats()})

    def enrich_pages(self, request: Request) -> Dict[str, Any]:
        return self._enrich(request, self.app.page_strategy, default_delay_ms=1000)

    def enrich_steam_pages(self, request: Request) -> Dict[str, Any]:
        return self._enrich(request, self.app.steam_strategy, default_delay_ms=1500, allow_force=False)

    def enrich_images(self, request: Request) -> Dict[str, Any]:
        if not self.app.image_strategy.is_configured():
            return error_response(400, 'RAPIDAPI_KEY is not configured')
        return self._enrich(request, self.app.image_strategy, default_delay_ms=2000, allow_force=False)

    def enrich_ai(self, request: Request) -> Dict[str, Any]:
        if not self.app.ai_strategy.is_configured():
            return error_response(400, 'GEMINI_API_KEY is not configured')
        return self._enrich(request, self.app.ai_strategy, default_delay_ms=2000)

    def _enrich(
        self,
        request: Request,
        strategy,
        default_delay_ms: int,
        allow_force: bool = True
    ) -> Dict[str, Any]:
        force = allow_force and bool(request.query_bool('force'))
        criteria = SelectionCriteria(force=force, min_version=strategy.version or None)
        stats = self.app.runner.enrich_pending(
            strategy,
            criteria,
            limit=request.query_int('limit', DEFAULT_API_LIMIT),
            delay_ms=request.query_int('delay', default_delay_ms)
        )
        return json_response(200, {
            'success': True,
            'message': f"{strategy.name} enrichment completed",
            'data': stats.to_dict(),
        })

    def _list_response(self, records: List[Any]) -> Dict[str, Any]:
        return json_response(200, {
            'success': True,
            'data': [to_document(r) for r in records],
            'count': len(records),
        })


def describe_request(event: Dict[str, Any]) -> Dict[str, Any]:
    """Loggable summary of a proxy event without credentials."""
    request = Request.from_event(event)
    return {
        'method': request.method,
        'path': request.path,
        'user_agent': get_header(request.headers, 'User-Agent'),
    }
